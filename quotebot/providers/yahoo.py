"""Yahoo Finance chart API -- the secondary quote provider."""

from __future__ import annotations

import logging
from urllib.parse import quote as url_quote

import httpx

from quotebot.config import (
    COMPANY_NAMES,
    YAHOO_CHART_URL,
    YAHOO_SYMBOL_SUFFIX,
    YAHOO_TIMEOUT_SECONDS,
)
from quotebot.errors import InvalidPayloadError, ProviderNetworkError
from quotebot.models import Quote, QuoteSource, compute_change
from quotebot.providers.base import QuoteProvider, check_status, decode_json, to_float, to_int
from quotebot.resilience.session import random_user_agent
from quotebot.resilience.throttle import RequestThrottle
from quotebot.resilience.validator import PayloadKind

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://finance.yahoo.com",
    "Referer": "https://finance.yahoo.com/",
}


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------


def to_yahoo_symbol(symbol: str, suffix: str = YAHOO_SYMBOL_SUFFIX) -> str:
    """Exchange-qualified ticker for Yahoo, e.g. ``RELIANCE`` -> ``RELIANCE.NS``.

    Only used to build the request; the canonical symbol is never changed.
    """
    symbol = symbol.strip().upper()
    if suffix and symbol.endswith(suffix):
        return symbol
    return f"{symbol}{suffix}"


def company_name_for(symbol: str) -> str:
    return COMPANY_NAMES.get(symbol.upper(), f"{symbol} Limited")


def _parse_chart(raw: object, symbol: str) -> Quote:
    """Normalize ``chart.result[0].meta`` into a quote for the canonical *symbol*."""
    if not isinstance(raw, dict):
        raise ValueError("chart payload is not an object")
    chart = raw.get("chart") or {}
    results = chart.get("result") or []
    if not results:
        error = chart.get("error") or {}
        raise ValueError(f"no chart result ({error.get('description', 'empty')})")

    meta = results[0].get("meta") or {}
    last_price = to_float(meta.get("regularMarketPrice"))
    if last_price is None or last_price <= 0:
        raise ValueError(f"missing or non-positive regularMarketPrice: {meta.get('regularMarketPrice')!r}")

    previous_close = to_float(meta.get("previousClose"))
    if previous_close is None:
        previous_close = to_float(meta.get("chartPreviousClose"))
    change, percent_change = compute_change(last_price, previous_close)

    company_name = meta.get("longName") or meta.get("shortName") or company_name_for(symbol)

    return Quote(
        symbol=symbol,
        company_name=company_name,
        last_price=last_price,
        previous_close=previous_close,
        open_price=to_float(meta.get("regularMarketOpen")),
        day_high=to_float(meta.get("regularMarketDayHigh")),
        day_low=to_float(meta.get("regularMarketDayLow")),
        change=change,
        percent_change=percent_change,
        volume=to_int(meta.get("regularMarketVolume")),
        source=QuoteSource.SECONDARY,
    )


# ---------------------------------------------------------------------------
# Provider class
# ---------------------------------------------------------------------------


class YahooProvider(QuoteProvider):
    """Secondary provider: chart endpoint keyed by the exchange-suffixed symbol."""

    name = "yahoo"

    def __init__(
        self,
        throttle: RequestThrottle,
        *,
        client: httpx.AsyncClient | None = None,
        suffix: str = YAHOO_SYMBOL_SUFFIX,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=YAHOO_CHART_URL,
            timeout=YAHOO_TIMEOUT_SECONDS,
            headers=_DEFAULT_HEADERS,
        )
        self._throttle = throttle
        self._suffix = suffix

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_quote(self, symbol: str) -> Quote:
        """Fetch a quote; raises ``RateLimitedError`` on HTTP 429 so the caller can retry."""
        yahoo_symbol = to_yahoo_symbol(symbol, self._suffix)
        await self._throttle.add_random_delay()
        try:
            resp = await self._client.get(
                f"/{url_quote(yahoo_symbol, safe='.-')}",
                headers={"User-Agent": random_user_agent()},
            )
        except httpx.TimeoutException as exc:
            raise ProviderNetworkError(self.name, f"timeout: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise ProviderNetworkError(self.name, f"{type(exc).__name__}: {exc}") from exc

        check_status(self.name, resp)
        raw = decode_json(self.name, resp.content)
        try:
            return _parse_chart(raw, symbol)
        except (ValueError, TypeError, AttributeError, IndexError) as exc:
            raise InvalidPayloadError(
                self.name, PayloadKind.VALID_JSON, detail=f"unparseable chart: {exc}"
            ) from exc
