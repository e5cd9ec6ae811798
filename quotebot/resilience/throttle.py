"""Per-(provider, key) request pacing with randomized jitter."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from quotebot.config import PRE_REQUEST_DELAY_RANGE, THROTTLE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrottleSettings:
    """Minimum spacing between two requests for one key, plus extra random spread."""

    min_delay: float
    jitter: float = 0.0


_NO_THROTTLE = ThrottleSettings(min_delay=0.0, jitter=0.0)


class RequestThrottle:
    """Spaces out requests that share a ``(provider, key)`` pair.

    Each call to :meth:`wait_turn` reserves the next free start slot for its
    key and then sleeps until that slot.  The reservation happens before any
    await, so callers racing on the same key are handed successive slots,
    each at least ``min_delay`` after the previous one.  No lock is held while
    sleeping; different keys never wait on each other.
    """

    def __init__(
        self,
        settings: dict[str, ThrottleSettings],
        pre_request_delay: tuple[float, float] = (0.1, 0.5),
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = dict(settings)
        self._pre_request_delay = pre_request_delay
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._last_start: dict[tuple[str, str], float] = {}

    @classmethod
    def from_config(cls) -> RequestThrottle:
        """Build a throttle from the pacing values in ``quotebot.config``."""
        settings = {
            provider: ThrottleSettings(min_delay=values["min_delay"], jitter=values["jitter"])
            for provider, values in THROTTLE.items()
        }
        return cls(settings, PRE_REQUEST_DELAY_RANGE)

    def settings_for(self, provider: str) -> ThrottleSettings:
        settings = self._settings.get(provider)
        if settings is None:
            logger.warning("No throttle settings for provider %s -- not pacing", provider)
            return _NO_THROTTLE
        return settings

    async def wait_turn(self, provider: str, key: str) -> float:
        """Wait until *key* may be requested again; return the accepted start time."""
        settings = self.settings_for(provider)
        record_key = (provider, key)

        now = self._clock()
        last = self._last_start.get(record_key)
        if last is None:
            start = now
        else:
            spacing = settings.min_delay + self._rng.uniform(0.0, settings.jitter)
            start = max(now, last + spacing)
        self._last_start[record_key] = start

        wait = start - now
        if wait > 0:
            logger.debug("Throttling %s:%s for %.0fms", provider, key, wait * 1000)
            await self._sleep(wait)
        return start

    async def add_random_delay(self) -> float:
        """Sleep a short random interval before an outbound call."""
        low, high = self._pre_request_delay
        delay = self._rng.uniform(low, high) if high > 0 else 0.0
        if delay > 0:
            await self._sleep(delay)
        return delay

    def last_start(self, provider: str, key: str) -> float | None:
        return self._last_start.get((provider, key))

    def reset(self) -> None:
        """Forget every recorded request time."""
        self._last_start.clear()
        logger.info("Request throttling reset")

    def stats(self) -> dict:
        return {"tracked_keys": len(self._last_start)}
