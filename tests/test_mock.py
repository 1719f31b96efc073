"""Tests for the synthetic data service."""

from __future__ import annotations

import asyncio
import math
import random
from typing import Any

import pytest

from conftest import drain
from telemetry_link.backend.base import EventKind, SessionState, StatusPayload
from telemetry_link.backend.mock import (
    WAYPOINTS,
    MockDataService,
    classify_magnitude,
    heading_deg,
)
from telemetry_link.const import CSV_FIELDS


def record(service: MockDataService, *kinds: EventKind) -> list[tuple[str, Any]]:
    events: list[tuple[str, Any]] = []
    for kind in kinds:
        service.on(
            kind, lambda payload, kind=kind: events.append((kind.value, payload))
        )
    return events


@pytest.mark.parametrize(
    ("magnitude", "label"),
    [
        (1.7, "rosso"),
        (1.6, "rosso"),
        (1.3, "giallo"),
        (1.25, "giallo"),
        (1.2499, "verde"),
        (0.5, "verde"),
    ],
)
def test_classify_magnitude(magnitude: float, label: str) -> None:
    assert classify_magnitude(magnitude) == label


def test_classify_magnitude_with_custom_thresholds() -> None:
    assert classify_magnitude(1.1, giallo=1.0, rosso=2.0) == "giallo"
    assert classify_magnitude(2.0, giallo=1.0, rosso=2.0) == "rosso"


def test_heading_deg_cardinal_directions() -> None:
    assert heading_deg((0.0, 0.0), (1.0, 0.0)) == pytest.approx(0.0)
    assert heading_deg((0.0, 0.0), (0.0, 1.0)) == pytest.approx(90.0)
    assert heading_deg((0.0, 0.0), (-1.0, 0.0)) == pytest.approx(180.0)
    assert heading_deg((0.0, 0.0), (0.0, -1.0)) == pytest.approx(270.0)


def test_next_sample_fields_are_consistent() -> None:
    service = MockDataService(rng=random.Random(42))

    sample = service.next_sample()

    assert set(CSV_FIELDS) <= set(sample)
    assert sample["type"] == "data"
    assert sample["PacketIdx"] == 0
    magnitude = math.sqrt(
        sample["AccelX"] ** 2 + sample["AccelY"] ** 2 + sample["AccelZ"] ** 2
    )
    assert sample["AccelSum"] == pytest.approx(magnitude, abs=0.01)
    assert sample["EventClassText"] in {"verde", "giallo", "rosso"}
    assert sample["EventClass"] == {"verde": 0, "giallo": 1, "rosso": 2}[
        sample["EventClassText"]
    ]
    assert abs(sample["Latitude"] - WAYPOINTS[0][0]) <= 0.001
    assert abs(sample["Longitude"] - WAYPOINTS[0][1]) <= 0.001
    assert 10.0 <= sample["Speed"] <= 50.0
    assert 0.0 <= sample["Yaw"] < 360.0


def test_samples_cycle_through_waypoints() -> None:
    service = MockDataService(rng=random.Random(1))

    samples = [service.next_sample() for _ in range(len(WAYPOINTS) + 1)]

    assert [s["PacketIdx"] for s in samples] == list(range(len(WAYPOINTS) + 1))
    assert abs(samples[-1]["Latitude"] - WAYPOINTS[0][0]) <= 0.001
    assert abs(samples[3]["Latitude"] - WAYPOINTS[3][0]) <= 0.001


def test_zero_noise_classifies_gravity_as_verde() -> None:
    service = MockDataService(rng=random.Random(0), accel_sigma=0.0)

    sample = service.next_sample()

    assert sample["AccelSum"] == pytest.approx(1.0)
    assert sample["EventClassText"] == "verde"
    assert sample["Pitch"] == 0.0
    assert sample["Roll"] == 0.0


def test_period_honours_minimum() -> None:
    assert MockDataService().period == 1.0
    assert MockDataService(frequency_hz=4).period == 0.25
    assert MockDataService(frequency_hz=1000).period == 0.05


@pytest.mark.parametrize("frequency_hz", [0, -2.5, float("nan")])
def test_non_positive_frequency_falls_back_to_default(
    frequency_hz: float, caplog: pytest.LogCaptureFixture
) -> None:
    service = MockDataService(frequency_hz=frequency_hz)

    assert service.frequency_hz == 1.0
    assert service.period == 1.0
    assert "invalid frequency" in caplog.text


@pytest.mark.asyncio
async def test_connect_emits_open_and_ticks_data() -> None:
    service = MockDataService(frequency_hz=100, rng=random.Random(3))
    events = record(service, EventKind.OPEN, EventKind.STATUS, EventKind.DATA)

    task = service.connect()
    assert service.connect() is task
    await asyncio.sleep(0.12)

    assert events[0] == ("open", None)
    assert events[1] == ("status", StatusPayload("connected"))
    data = [payload for kind, payload in events if kind == "data"]
    assert data
    assert data[0]["PacketIdx"] == 0
    assert [kind for kind, _ in events].count("open") == 1
    await service.destroy()


@pytest.mark.asyncio
async def test_start_frequency_change_restarts_tick() -> None:
    service = MockDataService()
    service.connect()
    first_task = service._tick_task

    await service.send_start_once({"freq": "20"})
    await drain()

    assert service.frequency_hz == 20.0
    assert service.period == 0.05
    assert first_task is not None and first_task.cancelled()
    assert service._tick_task is not first_task
    await service.destroy()


@pytest.mark.asyncio
async def test_same_frequency_keeps_tick() -> None:
    service = MockDataService(frequency_hz=2)
    service.connect()
    task = service._tick_task

    await service.send_start_once({"freq": 2})

    assert service._tick_task is task
    await service.destroy()


@pytest.mark.asyncio
async def test_start_config_thresholds_applied_when_ordered() -> None:
    service = MockDataService(rng=random.Random(0), accel_sigma=0.0)
    service.connect()

    assert await service.send_command("setConfig", {"giallo": 0.5, "rosso": 0.9})
    assert service.next_sample()["EventClassText"] == "rosso"

    await service.send_start_once({"giallo": 2.0, "rosso": 1.0})
    assert service.next_sample()["EventClassText"] == "rosso"
    await service.destroy()


@pytest.mark.asyncio
async def test_commands_require_running_service() -> None:
    service = MockDataService()

    assert await service.send_command("setConfig", {"freq": 5}) is False
    assert service.frequency_hz == 1.0

    service.connect()
    assert await service.send_command("calibrate") is True
    await service.destroy()


@pytest.mark.asyncio
async def test_frequency_set_before_connect_applies_on_start() -> None:
    service = MockDataService()

    await service.send_start_once({"freq": 10})
    assert service._tick_task is None
    service.connect()

    assert service.period == pytest.approx(0.1)
    await service.destroy()


@pytest.mark.asyncio
async def test_close_stops_tick_and_emits_close() -> None:
    service = MockDataService(frequency_hz=50)
    events = record(service, EventKind.CLOSE, EventKind.STATUS, EventKind.DATA)
    service.connect()
    task = service._tick_task

    await service.close()
    events_after_close = list(events)
    await asyncio.sleep(0.06)

    assert service.state is SessionState.CLOSED
    assert task is not None and task.done()
    assert ("close", None) in events_after_close
    assert ("status", StatusPayload("closed")) in events_after_close
    assert events == events_after_close

    await service.close()
    assert events == events_after_close


@pytest.mark.asyncio
async def test_destroy_clears_listeners_and_blocks_connect() -> None:
    service = MockDataService()
    events = record(service, EventKind.OPEN)
    service.connect()

    await service.destroy()

    assert service.connect() is None
    assert service.state is SessionState.CLOSED
    assert events == [("open", None)]
