"""Consecutive-failure circuit breaker for fallback-eligible providers.

States:
- CLOSED: calls pass through.
- OPEN: ``failure_threshold`` failures recorded and the last one is younger
  than ``timeout_seconds``; calls are skipped without any I/O.
- HALF_OPEN: the timeout has passed; the next call goes through as a trial.

The OPEN -> HALF_OPEN transition happens inside :meth:`is_open` and resets
the failure counter *before* the trial runs, so a failed trial leaves the
counter at 1 rather than re-opening immediately.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class BreakerState(str, enum.Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreaker:
    """Failure counter plus last-failure clock for one provider."""

    provider_name: str
    failure_threshold: int = 5
    timeout_seconds: float = 30.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _failure_count: int = field(default=0, init=False, repr=False)
    _last_failure_time: Optional[float] = field(default=None, init=False, repr=False)
    _trial_pending: bool = field(default=False, init=False, repr=False)
    _last_error: Optional[str] = field(default=None, init=False, repr=False)

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def _elapsed(self) -> float:
        if self._last_failure_time is None:
            return float("inf")
        return self.clock() - self._last_failure_time

    @property
    def state(self) -> BreakerState:
        """Current state, read without triggering a transition."""
        if self._trial_pending:
            return BreakerState.HALF_OPEN
        if self._failure_count >= self.failure_threshold:
            if self._elapsed() < self.timeout_seconds:
                return BreakerState.OPEN
            return BreakerState.HALF_OPEN
        return BreakerState.CLOSED

    def is_open(self) -> bool:
        """True if calls must be skipped; lets one trial through once the timeout passes."""
        if self._failure_count < self.failure_threshold:
            return False
        if self._elapsed() < self.timeout_seconds:
            return True
        self._failure_count = 0
        self._trial_pending = True
        logger.info("Circuit breaker HALF-OPEN for %s -- allowing a trial call", self.provider_name)
        return False

    def record_success(self) -> None:
        if self._failure_count > 0 or self._trial_pending:
            logger.info(
                "Circuit breaker CLOSED for %s after %d failures",
                self.provider_name, self._failure_count,
            )
        self._failure_count = 0
        self._trial_pending = False
        self._last_error = None

    def record_failure(self, error: str = "") -> None:
        self._trial_pending = False
        self._failure_count += 1
        self._last_failure_time = self.clock()
        self._last_error = error[:500] if error else None
        if self._failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPEN for %s after %d failures: %s",
                self.provider_name, self._failure_count, error[:200],
            )

    def reset(self) -> None:
        self._failure_count = 0
        self._last_failure_time = None
        self._trial_pending = False
        self._last_error = None

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "timeout_seconds": self.timeout_seconds,
            "last_error": self._last_error,
        }
