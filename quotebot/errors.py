"""Failure taxonomy for the quote providers.

Providers raise these; the quote service catches every one of them and moves
on to the next tier, so none of them reach callers of ``get_quote``.
"""

from __future__ import annotations

from quotebot.resilience.validator import PayloadKind


class QuoteSourceError(Exception):
    """Base class for a failed attempt against one provider."""

    reason = "provider error"

    def __init__(self, provider: str, message: str = "") -> None:
        self.provider = provider
        super().__init__(message or self.reason)


class SessionUnavailableError(QuoteSourceError):
    """The primary provider's session could not be established (no cookies)."""

    reason = "session unavailable"


class AuthenticationError(QuoteSourceError):
    """The provider rejected the session credentials (HTTP 401)."""

    reason = "401 unauthorized"


class InvalidPayloadError(QuoteSourceError):
    """The response body was empty, an HTML page, corrupted, or unparseable.

    Only the classification and a short printable preview are kept, never the
    raw body.
    """

    reason = "invalid payload"

    def __init__(self, provider: str, kind: PayloadKind, preview: str = "", detail: str = "") -> None:
        self.kind = kind
        self.preview = preview
        message = detail or f"{kind.value} response"
        super().__init__(provider, message)


class RateLimitedError(QuoteSourceError):
    """The provider signalled throttling (HTTP 429)."""

    reason = "rate limited (429)"


class ProviderNetworkError(QuoteSourceError):
    """Connection failure, timeout, or an unexpected HTTP status."""

    reason = "network error"
