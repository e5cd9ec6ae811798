"""Resilience primitives: payload validation, pacing, circuit breaking, sessions."""

from quotebot.resilience.validator import PayloadKind, classify
from quotebot.resilience.throttle import RequestThrottle, ThrottleSettings
from quotebot.resilience.breaker import BreakerState, CircuitBreaker
from quotebot.resilience.session import Session, SessionManager

__all__ = [
    "BreakerState",
    "CircuitBreaker",
    "PayloadKind",
    "RequestThrottle",
    "Session",
    "SessionManager",
    "ThrottleSettings",
    "classify",
]
