"""NSE website JSON API -- the primary quote provider.

Calls need a warmed cookie session (see :mod:`quotebot.resilience.session`)
and a browser-like header set that changes from request to request.
"""

from __future__ import annotations

import logging

import httpx

from quotebot.config import (
    NSE_BASE_URL,
    NSE_MARKET_STATUS_ENDPOINT,
    NSE_QUOTE_ENDPOINT,
    NSE_TIMEOUT_SECONDS,
)
from quotebot.errors import InvalidPayloadError, ProviderNetworkError, QuoteSourceError
from quotebot.models import Quote, QuoteSource, compute_change
from quotebot.providers.base import QuoteProvider, check_status, decode_json, to_float, to_int
from quotebot.resilience.session import SessionManager, random_accept_header, random_user_agent
from quotebot.resilience.throttle import RequestThrottle
from quotebot.resilience.validator import PayloadKind

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS: dict[str, str] = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "DNT": "1",
}

_MARKET_STATUS_KEY = "MARKET_STATUS"


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------


def _parse_quote(raw: object, symbol: str) -> Quote:
    """Normalize an ``/api/quote-equity`` payload.

    Change and percent change are recomputed from last price and previous
    close when both exist; NSE's own ``change``/``pChange`` are used otherwise.
    """
    if not isinstance(raw, dict):
        raise ValueError("quote payload is not an object")

    price_info = raw.get("priceInfo") or {}
    last_price = to_float(price_info.get("lastPrice"))
    if last_price is None or last_price <= 0:
        raise ValueError(f"missing or non-positive lastPrice: {price_info.get('lastPrice')!r}")

    previous_close = to_float(price_info.get("previousClose"))
    change, percent_change = compute_change(last_price, previous_close)
    if change is None:
        change = to_float(price_info.get("change"))
        p_change = to_float(price_info.get("pChange"))
        percent_change = round(p_change, 2) if p_change is not None else None

    high_low = price_info.get("intraDayHighLow") or {}
    info = raw.get("info") or {}
    trade_info = raw.get("securityWiseDP") or {}

    return Quote(
        symbol=symbol,
        company_name=info.get("companyName"),
        last_price=last_price,
        previous_close=previous_close,
        open_price=to_float(price_info.get("open")),
        day_high=to_float(high_low.get("max")),
        day_low=to_float(high_low.get("min")),
        change=change,
        percent_change=percent_change,
        volume=to_int(trade_info.get("quantityTraded")),
        source=QuoteSource.PRIMARY,
    )


def _parse_market_open(raw: object) -> bool:
    """Interpret ``/api/marketStatus``: either a list of markets or a plain state string."""
    if not isinstance(raw, dict):
        return False
    state = raw.get("marketState")
    if isinstance(state, str):
        return state == "Market is Open"
    if isinstance(state, list):
        for market in state:
            if isinstance(market, dict) and market.get("market") == "Capital Market":
                return str(market.get("marketStatus", "")).lower() == "open"
    return False


# ---------------------------------------------------------------------------
# Provider class
# ---------------------------------------------------------------------------


class NseProvider(QuoteProvider):
    """Primary provider: NSE quote-equity endpoint behind a cookie session."""

    name = "nse"

    def __init__(
        self,
        throttle: RequestThrottle,
        *,
        client: httpx.AsyncClient | None = None,
        session: SessionManager | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=NSE_BASE_URL,
            timeout=NSE_TIMEOUT_SECONDS,
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )
        self._throttle = throttle
        self.session = session or SessionManager(self._client, throttle, provider=self.name)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _request_headers(self) -> dict[str, str]:
        headers = {
            "Accept": random_accept_header(),
            "Accept-Charset": "utf-8",
            "Referer": f"{NSE_BASE_URL}/",
            "User-Agent": random_user_agent(),
            "X-Requested-With": "XMLHttpRequest",
        }
        cookie = self.session.cookie_header()
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def _request(self, endpoint: str, params: dict) -> object:
        """Jittered GET with session cookies; raises on any non-JSON outcome."""
        await self._throttle.add_random_delay()
        try:
            resp = await self._client.get(endpoint, params=params, headers=self._request_headers())
        except httpx.TimeoutException as exc:
            raise ProviderNetworkError(self.name, f"timeout: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise ProviderNetworkError(self.name, f"{type(exc).__name__}: {exc}") from exc

        logger.debug(
            "NSE %s -> HTTP %d (%s)",
            endpoint, resp.status_code, resp.headers.get("content-type", "unknown"),
        )
        check_status(self.name, resp)
        return decode_json(self.name, resp.content)

    # -- Public interface ----------------------------------------------------

    async def get_quote(self, symbol: str) -> Quote:
        """Fetch a quote; the caller is responsible for pacing and the session."""
        raw = await self._request(NSE_QUOTE_ENDPOINT, {"symbol": symbol})
        try:
            return _parse_quote(raw, symbol)
        except (ValueError, TypeError, AttributeError) as exc:
            raise InvalidPayloadError(
                self.name, PayloadKind.VALID_JSON, detail=f"unparseable quote: {exc}"
            ) from exc

    async def is_market_open(self) -> bool:
        """Best-effort market status check; any failure reads as closed."""
        try:
            await self._throttle.wait_turn(self.name, _MARKET_STATUS_KEY)
            if not await self.session.ensure_valid():
                return False
            raw = await self._request(NSE_MARKET_STATUS_ENDPOINT, {})
        except QuoteSourceError as exc:
            logger.warning("Market status check failed: %s", exc)
            return False
        return _parse_market_open(raw)
