"""Abstract base class and shared response handling for quote providers."""

from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod

import httpx

from quotebot.errors import (
    AuthenticationError,
    InvalidPayloadError,
    ProviderNetworkError,
    RateLimitedError,
)
from quotebot.models import Quote
from quotebot.resilience.validator import PayloadKind, classify, preview

logger = logging.getLogger(__name__)


class QuoteProvider(ABC):
    """Interface that every quote provider must implement."""

    name: str = "provider"

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Fetch the latest quote for *symbol*.

        Raises a :class:`quotebot.errors.QuoteSourceError` subclass on any
        failure; never returns a partial quote.
        """

    async def close(self) -> None:
        """Release network resources held by the provider."""


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------


def to_float(value: object) -> float | None:
    """Parse a numeric field that providers send as number or string."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).replace(",", ""))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_int(value: object) -> int | None:
    number = to_float(value)
    return int(number) if number is not None else None


def check_status(provider: str, resp: httpx.Response) -> None:
    """Map HTTP error statuses onto the failure taxonomy."""
    status = resp.status_code
    if status < 400:
        return
    if status == 401:
        raise AuthenticationError(provider, f"HTTP {status}")
    if status == 429:
        raise RateLimitedError(provider, f"HTTP {status}")
    kind = "client" if status < 500 else "server"
    raise ProviderNetworkError(provider, f"{kind} error HTTP {status}")


def decode_json(provider: str, body: bytes | str) -> object:
    """Classify *body* and parse it only if it looks like JSON."""
    kind = classify(body)
    if kind is not PayloadKind.VALID_JSON:
        raise InvalidPayloadError(provider, kind, preview(body))
    try:
        return json.loads(body)
    except ValueError as exc:
        raise InvalidPayloadError(
            provider, kind, preview(body), detail=f"malformed JSON: {exc}"
        ) from exc
