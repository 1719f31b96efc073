from __future__ import annotations

import random

import pytest

from telemetry_link.backend.ws_client import ReconnectPolicy


def test_default_delays_double_until_exponent_cap() -> None:
    policy = ReconnectPolicy(jitter=0.0)

    delays = [policy.delay(retries) for retries in range(7)]

    assert delays == [3.0, 6.0, 12.0, 24.0, 30.0, 30.0, 30.0]


def test_delays_are_monotone_and_capped_with_jitter() -> None:
    policy = ReconnectPolicy()
    rng = random.Random(7)

    previous = 0.0
    for retries in range(12):
        bound = min(policy.base * 2 ** min(retries, policy.max_exp), policy.max_delay)
        delay = policy.delay(retries, rng=rng)
        assert bound <= delay <= min(bound + policy.jitter, policy.max_delay)
        assert delay <= policy.max_delay
        assert delay >= previous - policy.jitter
        previous = delay


def test_exponent_cap_limits_growth() -> None:
    policy = ReconnectPolicy(base=1.0, max_delay=1000.0, max_exp=2, jitter=0.0)

    assert policy.delay(2) == 4.0
    assert policy.delay(10) == 4.0


def test_negative_retry_count_is_treated_as_zero() -> None:
    assert ReconnectPolicy(jitter=0.0).delay(-3) == 3.0


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_jitter_is_bounded(seed: int) -> None:
    policy = ReconnectPolicy(base=1.0, max_delay=100.0, jitter=0.5)

    delay = policy.delay(0, rng=random.Random(seed))

    assert 1.0 <= delay < 1.5
