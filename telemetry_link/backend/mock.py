"""Synthetic data service producing plausible instrument telemetry."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from contextlib import suppress
from datetime import UTC, datetime
import logging
import math
import random
from types import MappingProxyType
from typing import Any, Final

from pydantic import ValidationError

from ..codecs.models import StartConfig, SyntheticSample
from ..const import (
    CLASS_GIALLO,
    CLASS_ROSSO,
    CLASS_VERDE,
    GIALLO_THRESHOLD,
    MOCK_DEFAULT_FREQUENCY_HZ,
    MOCK_MIN_PERIOD_S,
    ROSSO_THRESHOLD,
    START_COMMAND,
    classification_code,
)
from .base import (
    EventKind,
    Listener,
    ListenerTable,
    SessionState,
    StatusPayload,
    Unsubscribe,
)

_LOGGER = logging.getLogger(__name__)

# Closed course roughly 15 km off Ancona.
WAYPOINTS: Final[tuple[tuple[float, float], ...]] = (
    (43.7000, 13.5000),
    (43.7200, 13.5200),
    (43.7400, 13.5400),
    (43.7600, 13.5600),
    (43.7800, 13.5800),
    (43.8000, 13.6000),
    (43.8200, 13.6200),
    (43.8400, 13.6400),
)

POSITION_JITTER_DEG: Final = 0.0005
ACCEL_SIGMA_G: Final = 0.25
SPEED_RANGE_KMH: Final = (10.0, 50.0)


def classify_magnitude(
    magnitude: float,
    *,
    giallo: float = GIALLO_THRESHOLD,
    rosso: float = ROSSO_THRESHOLD,
) -> str:
    """Return the severity label for an acceleration magnitude."""

    if magnitude >= rosso:
        return CLASS_ROSSO
    if magnitude >= giallo:
        return CLASS_GIALLO
    return CLASS_VERDE


def heading_deg(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Return the initial compass heading from ``origin`` to ``target``."""

    lat1, lon1 = (math.radians(v) for v in origin)
    lat2, lon2 = (math.radians(v) for v in target)
    d_lon = lon2 - lon1
    x = math.sin(d_lon) * math.cos(lat2)
    y = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(
        d_lon
    )
    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


class MockDataService:
    """Data service that fabricates telemetry on a timer."""

    def __init__(
        self,
        *,
        frequency_hz: float = MOCK_DEFAULT_FREQUENCY_HZ,
        rng: random.Random | None = None,
        accel_sigma: float = ACCEL_SIGMA_G,
    ) -> None:
        """Initialise the generator without starting it."""

        if not frequency_hz > 0:
            _LOGGER.warning(
                "MOCK: invalid frequency %s Hz, using %s Hz",
                frequency_hz,
                MOCK_DEFAULT_FREQUENCY_HZ,
            )
            frequency_hz = MOCK_DEFAULT_FREQUENCY_HZ

        self._listeners = ListenerTable(_LOGGER)
        self._state = SessionState.IDLE
        self._tick_task: asyncio.Task | None = None
        self._destroyed = False

        self._frequency_hz = frequency_hz
        self._giallo = GIALLO_THRESHOLD
        self._rosso = ROSSO_THRESHOLD
        self._rng = rng or random.Random()
        self._accel_sigma = accel_sigma
        self._waypoint_idx = 0
        self._packet_idx = 0

    @property
    def state(self) -> SessionState:
        """Return the current session state."""

        return self._state

    @property
    def frequency_hz(self) -> float:
        """Return the sampling frequency in Hz."""

        return self._frequency_hz

    @property
    def period(self) -> float:
        """Return the tick period in seconds."""

        return max(MOCK_MIN_PERIOD_S, 1.0 / self._frequency_hz)

    def on(self, kind: EventKind | str, callback: Listener) -> Unsubscribe | None:
        """Register ``callback`` for ``kind``; return an unsubscribe hook."""

        return self._listeners.add(kind, callback)

    def off(self, kind: EventKind | str, callback: Listener | None = None) -> None:
        """Remove ``callback`` or every callback registered for ``kind``."""

        self._listeners.remove(kind, callback)

    def connect(self) -> asyncio.Task | None:
        """Start generating samples unless already running."""

        if self._destroyed:
            _LOGGER.warning("MOCK: connect ignored on destroyed session")
            return None
        if self._state is SessionState.OPEN:
            return self._tick_task

        _LOGGER.info("MOCK: simulation started (%.2f Hz)", self._frequency_hz)
        self._state = SessionState.OPEN
        self._listeners.emit(EventKind.OPEN)
        self._listeners.emit(EventKind.STATUS, StatusPayload("connected"))
        self._restart_tick()
        return self._tick_task

    async def send_command(
        self, command: str, params: Mapping[str, Any] | None = None
    ) -> bool:
        """Accept a command while running; ``setConfig`` reconfigures."""

        if self._state is not SessionState.OPEN:
            _LOGGER.warning("MOCK: cannot send command %s, not connected", command)
            return False
        if command == START_COMMAND:
            self._apply_start_config(params or {})
        else:
            _LOGGER.debug("MOCK: ignoring command %s", command)
        return True

    async def send_start_once(self, params: Mapping[str, Any] | None = None) -> None:
        """Apply the start configuration; a new frequency restarts the tick."""

        self._apply_start_config(params or {})

    async def close(self) -> None:
        """Stop the tick and publish the close transition."""

        task = self._tick_task
        self._tick_task = None
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                with suppress(asyncio.CancelledError):
                    await task
        if self._state is not SessionState.OPEN:
            return
        self._state = SessionState.CLOSED
        _LOGGER.info("MOCK: simulation stopped")
        self._listeners.emit(EventKind.CLOSE)
        self._listeners.emit(EventKind.STATUS, StatusPayload("closed"))

    async def destroy(self) -> None:
        """Stop the tick and drop every subscription."""

        await self.close()
        self._destroyed = True
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    def next_sample(self) -> dict[str, Any]:
        """Advance along the course and return the next sample record."""

        rng = self._rng
        origin = WAYPOINTS[self._waypoint_idx]
        target = WAYPOINTS[(self._waypoint_idx + 1) % len(WAYPOINTS)]

        accel_x = rng.gauss(0.0, self._accel_sigma)
        accel_y = rng.gauss(0.0, self._accel_sigma)
        accel_z = rng.gauss(1.0, self._accel_sigma)
        magnitude = math.sqrt(accel_x**2 + accel_y**2 + accel_z**2)
        label = classify_magnitude(magnitude, giallo=self._giallo, rosso=self._rosso)
        pitch = math.degrees(math.atan2(accel_x, math.hypot(accel_y, accel_z)))
        roll = math.degrees(math.atan2(accel_y, accel_z))
        latitude = origin[0] + rng.uniform(-POSITION_JITTER_DEG, POSITION_JITTER_DEG)
        longitude = origin[1] + rng.uniform(-POSITION_JITTER_DEG, POSITION_JITTER_DEG)

        sample = SyntheticSample(
            datetime=datetime.now(UTC).isoformat(timespec="milliseconds"),
            packet_idx=self._packet_idx,
            accel_x=round(accel_x, 3),
            accel_y=round(accel_y, 3),
            accel_z=round(accel_z, 3),
            accel_sum=round(magnitude, 3),
            pitch=round(pitch, 2),
            roll=round(roll, 2),
            yaw=round(heading_deg(origin, target), 2),
            speed=round(rng.uniform(*SPEED_RANGE_KMH), 1),
            latitude=round(latitude, 6),
            longitude=round(longitude, 6),
            event_class=classification_code(label),
            event_class_text=label,
        )

        self._waypoint_idx = (self._waypoint_idx + 1) % len(WAYPOINTS)
        self._packet_idx += 1
        return sample.as_record()

    def _restart_tick(self) -> None:
        """Replace the tick task with one running at the current period."""

        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()
        loop = asyncio.get_running_loop()
        self._tick_task = loop.create_task(
            self._tick_loop(self.period), name="mock-data-tick"
        )

    async def _tick_loop(self, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            self._listeners.emit(EventKind.DATA, MappingProxyType(self.next_sample()))

    def _apply_start_config(self, params: Mapping[str, Any]) -> None:
        try:
            config = StartConfig.model_validate(dict(params))
        except ValidationError as err:
            _LOGGER.warning("MOCK: invalid start configuration: %s", err)
            return

        giallo = config.giallo if config.giallo is not None else self._giallo
        rosso = config.rosso if config.rosso is not None else self._rosso
        if giallo < rosso:
            self._giallo, self._rosso = giallo, rosso
        else:
            _LOGGER.warning(
                "MOCK: ignoring thresholds giallo=%s rosso=%s", giallo, rosso
            )

        if config.freq is None or config.freq == self._frequency_hz:
            return
        self._frequency_hz = config.freq
        _LOGGER.debug("MOCK: frequency set to %.2f Hz", config.freq)
        if self._state is SessionState.OPEN:
            self._restart_tick()


__all__ = ["WAYPOINTS", "MockDataService", "classify_magnitude", "heading_deg"]
