"""Tests for per-(provider, key) request pacing.

Covers:
- First request for a key starts immediately
- Repeat requests for a key wait min_delay plus jitter
- Distinct keys and distinct providers never wait on each other
- Concurrent callers racing for one key get slots min_delay apart
- Unknown providers are not paced
- Pre-request jitter stays within its configured range
- reset() and stats() bookkeeping
"""

from __future__ import annotations

import asyncio
import random
import time

import pytest

from quotebot.config import THROTTLE
from quotebot.resilience.throttle import RequestThrottle, ThrottleSettings

# ---------------------------------------------------------------------------
# Fixtures & helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _throttle(clock: FakeClock, jitter: float = 0.0) -> RequestThrottle:
    return RequestThrottle(
        {
            "nse": ThrottleSettings(min_delay=2.0, jitter=jitter),
            "yahoo": ThrottleSettings(min_delay=1.0, jitter=jitter),
        },
        pre_request_delay=(0.1, 0.5),
        clock=clock,
        sleep=clock.sleep,
        rng=random.Random(42),
    )


# ---------------------------------------------------------------------------
# wait_turn
# ---------------------------------------------------------------------------


class TestWaitTurn:
    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self, clock):
        throttle = _throttle(clock)
        start = await throttle.wait_turn("nse", "RELIANCE")
        assert start == 1000.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_second_request_waits_min_delay(self, clock):
        throttle = _throttle(clock)
        await throttle.wait_turn("nse", "RELIANCE")
        start = await throttle.wait_turn("nse", "RELIANCE")
        assert start == pytest.approx(1002.0)
        assert clock.sleeps == [pytest.approx(2.0)]

    @pytest.mark.asyncio
    async def test_jitter_extends_wait_within_bound(self, clock):
        throttle = _throttle(clock, jitter=3.0)
        first = await throttle.wait_turn("nse", "TCS")
        second = await throttle.wait_turn("nse", "TCS")
        assert 2.0 <= second - first <= 5.0

    @pytest.mark.asyncio
    async def test_partial_elapsed_time_counts(self, clock):
        throttle = _throttle(clock)
        await throttle.wait_turn("nse", "INFY")
        clock.now += 1.5
        await throttle.wait_turn("nse", "INFY")
        assert clock.sleeps == [pytest.approx(0.5)]

    @pytest.mark.asyncio
    async def test_no_wait_after_spacing_elapsed(self, clock):
        throttle = _throttle(clock)
        await throttle.wait_turn("nse", "INFY")
        clock.now += 10
        await throttle.wait_turn("nse", "INFY")
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_distinct_keys_do_not_wait(self, clock):
        throttle = _throttle(clock)
        await throttle.wait_turn("nse", "RELIANCE")
        await throttle.wait_turn("nse", "TCS")
        await throttle.wait_turn("yahoo", "RELIANCE")
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_get_spaced_slots(self, clock):
        throttle = _throttle(clock, jitter=3.0)
        starts = await asyncio.gather(
            *(throttle.wait_turn("nse", "HDFCBANK") for _ in range(5))
        )
        ordered = sorted(starts)
        gaps = [b - a for a, b in zip(ordered, ordered[1:])]
        assert len(set(starts)) == 5
        assert all(2.0 <= gap <= 5.0 for gap in gaps)

    @pytest.mark.asyncio
    async def test_unknown_provider_is_not_paced(self, clock):
        throttle = _throttle(clock)
        await throttle.wait_turn("bse", "RELIANCE")
        await throttle.wait_turn("bse", "RELIANCE")
        assert clock.sleeps == []


class TestWaitTurnRealClock:
    @pytest.mark.asyncio
    async def test_spacing_holds_under_real_concurrency(self):
        throttle = RequestThrottle(
            {"nse": ThrottleSettings(min_delay=0.05, jitter=0.0)},
            pre_request_delay=(0.0, 0.0),
        )
        observed: list[float] = []

        async def request() -> None:
            await throttle.wait_turn("nse", "SBIN")
            observed.append(time.monotonic())

        await asyncio.gather(*(request() for _ in range(4)))
        observed.sort()
        gaps = [b - a for a, b in zip(observed, observed[1:])]
        assert all(gap >= 0.04 for gap in gaps)


# ---------------------------------------------------------------------------
# add_random_delay, reset, stats, from_config
# ---------------------------------------------------------------------------


class TestRandomDelay:
    @pytest.mark.asyncio
    async def test_delay_within_range(self, clock):
        throttle = _throttle(clock)
        for _ in range(20):
            delay = await throttle.add_random_delay()
            assert 0.1 <= delay <= 0.5
        assert len(clock.sleeps) == 20

    @pytest.mark.asyncio
    async def test_zero_range_skips_sleep(self, clock):
        throttle = RequestThrottle({}, pre_request_delay=(0.0, 0.0), clock=clock, sleep=clock.sleep)
        assert await throttle.add_random_delay() == 0.0
        assert clock.sleeps == []


class TestBookkeeping:
    @pytest.mark.asyncio
    async def test_stats_and_reset(self, clock):
        throttle = _throttle(clock)
        await throttle.wait_turn("nse", "A")
        await throttle.wait_turn("nse", "B")
        assert throttle.stats() == {"tracked_keys": 2}
        assert throttle.last_start("nse", "A") == 1000.0

        throttle.reset()
        assert throttle.stats() == {"tracked_keys": 0}
        assert throttle.last_start("nse", "A") is None

    def test_from_config(self):
        throttle = RequestThrottle.from_config()
        nse = throttle.settings_for("nse")
        assert nse.min_delay == THROTTLE["nse"]["min_delay"]
        assert nse.jitter == THROTTLE["nse"]["jitter"]
        assert throttle.settings_for("yahoo").min_delay == THROTTLE["yahoo"]["min_delay"]
