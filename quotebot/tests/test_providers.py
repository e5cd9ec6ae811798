"""Tests for the NSE, Yahoo and synthetic quote providers.

Covers:
- Shared helpers: numeric coercion (non-finite values dropped) and HTTP status mapping
- NSE payload parsing (computed change, pChange fallback, bad prices)
- NSE requests carry session cookies and rotated browser headers
- NSE failure mapping: 401, 5xx, HTML page, malformed JSON, timeout
- NSE market status parsing and fail-closed behavior
- Yahoo chart parsing (NaN and Infinity never reach a quote), .NS suffix at the call site, 429 vs other 4xx
- Synthetic quotes are positive, internally consistent and labelled
"""

from __future__ import annotations

import json
import random

import httpx
import pytest

from quotebot.errors import (
    AuthenticationError,
    InvalidPayloadError,
    ProviderNetworkError,
    RateLimitedError,
)
from quotebot.models import QuoteSource
from quotebot.providers.base import check_status, to_float, to_int
from quotebot.providers.nse import NseProvider, _parse_market_open, _parse_quote
from quotebot.providers.synthetic import SyntheticProvider
from quotebot.providers.yahoo import YahooProvider, _parse_chart, company_name_for, to_yahoo_symbol
from quotebot.resilience.throttle import RequestThrottle, ThrottleSettings
from quotebot.resilience.validator import PayloadKind

# ---------------------------------------------------------------------------
# Fixtures & helpers
# ---------------------------------------------------------------------------

NSE_PAYLOAD = {
    "info": {"symbol": "RELIANCE", "companyName": "Reliance Industries Limited"},
    "priceInfo": {
        "lastPrice": 2950.5,
        "change": 30.5,
        "pChange": 1.0445,
        "previousClose": 2920.0,
        "open": 2925.0,
        "intraDayHighLow": {"min": 2910.0, "max": 2960.0},
    },
    "securityWiseDP": {"quantityTraded": 5234567},
}

YAHOO_PAYLOAD = {
    "chart": {
        "result": [{"meta": {"regularMarketPrice": "2500.00", "previousClose": "2474.50"}}],
        "error": None,
    }
}


def _throttle() -> RequestThrottle:
    return RequestThrottle(
        {"nse": ThrottleSettings(0.0), "yahoo": ThrottleSettings(0.0)},
        pre_request_delay=(0.0, 0.0),
    )


def _nse(handler) -> NseProvider:
    client = httpx.AsyncClient(
        base_url="https://www.nseindia.com", transport=httpx.MockTransport(handler)
    )
    return NseProvider(_throttle(), client=client)


def _yahoo(handler) -> YahooProvider:
    client = httpx.AsyncClient(
        base_url="https://query1.finance.yahoo.com/v8/finance/chart",
        transport=httpx.MockTransport(handler),
    )
    return YahooProvider(_throttle(), client=client)


def _nse_handler(quote_response: httpx.Response, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/":
            return httpx.Response(200, headers=[("set-cookie", "nsit=abc; Path=/")], text="<html/>")
        if seen is not None:
            seen.append(request)
        return quote_response
    return handler


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_to_float(self):
        assert to_float("2,500.75") == 2500.75
        assert to_float(12) == 12.0
        assert to_float(None) is None
        assert to_float(True) is None
        assert to_float("n/a") is None

    @pytest.mark.parametrize("value", ["NaN", "nan", "Infinity", "-inf", float("inf"), float("nan")])
    def test_to_float_rejects_non_finite(self, value):
        assert to_float(value) is None

    def test_to_int(self):
        assert to_int("1,234") == 1234
        assert to_int(None) is None

    @pytest.mark.parametrize(
        "status, exc",
        [(401, AuthenticationError), (429, RateLimitedError), (404, ProviderNetworkError), (503, ProviderNetworkError)],
    )
    def test_check_status(self, status, exc):
        with pytest.raises(exc):
            check_status("nse", httpx.Response(status))

    def test_check_status_ok(self):
        check_status("nse", httpx.Response(200))


# ---------------------------------------------------------------------------
# NSE
# ---------------------------------------------------------------------------


class TestNseParsing:
    def test_full_payload(self):
        quote = _parse_quote(NSE_PAYLOAD, "RELIANCE")
        assert quote.source is QuoteSource.PRIMARY
        assert quote.company_name == "Reliance Industries Limited"
        assert quote.last_price == 2950.5
        assert quote.change == 30.5
        assert quote.percent_change == 1.04
        assert quote.day_high == 2960.0
        assert quote.day_low == 2910.0
        assert quote.volume == 5234567

    def test_falls_back_to_reported_change(self):
        payload = {"priceInfo": {"lastPrice": "101.5", "change": "1.5", "pChange": "1.499"}}
        quote = _parse_quote(payload, "ITC")
        assert quote.change == 1.5
        assert quote.percent_change == 1.5
        assert quote.previous_close is None

    @pytest.mark.parametrize("price", [0, -5, None, "abc", "NaN", "Infinity"])
    def test_rejects_bad_price(self, price):
        with pytest.raises(ValueError):
            _parse_quote({"priceInfo": {"lastPrice": price}}, "X")

    def test_market_status_list(self):
        raw = {"marketState": [{"market": "Currency", "marketStatus": "Open"},
                               {"market": "Capital Market", "marketStatus": "Open"}]}
        assert _parse_market_open(raw) is True

    def test_market_status_closed(self):
        assert _parse_market_open({"marketState": [{"market": "Capital Market", "marketStatus": "Closed"}]}) is False
        assert _parse_market_open({"marketState": "Market is Closed"}) is False
        assert _parse_market_open([]) is False


class TestNseProvider:
    @pytest.mark.asyncio
    async def test_quote_with_session_cookies(self):
        seen: list[httpx.Request] = []
        nse = _nse(_nse_handler(httpx.Response(200, json=NSE_PAYLOAD), seen))
        assert await nse.session.ensure_valid() is True

        quote = await nse.get_quote("RELIANCE")
        assert quote.last_price == 2950.5
        request = seen[0]
        assert request.url.path == "/api/quote-equity"
        assert request.url.params["symbol"] == "RELIANCE"
        assert request.headers["cookie"] == "nsit=abc"
        assert request.headers["x-requested-with"] == "XMLHttpRequest"
        assert "Mozilla" in request.headers["user-agent"]
        await nse.close()

    @pytest.mark.asyncio
    async def test_401_raises_authentication_error(self):
        nse = _nse(_nse_handler(httpx.Response(401, text="Unauthorized")))
        with pytest.raises(AuthenticationError):
            await nse.get_quote("RELIANCE")

    @pytest.mark.asyncio
    async def test_server_error(self):
        nse = _nse(_nse_handler(httpx.Response(503, text="busy")))
        with pytest.raises(ProviderNetworkError, match="503"):
            await nse.get_quote("RELIANCE")

    @pytest.mark.asyncio
    async def test_html_page_is_invalid_payload(self):
        nse = _nse(_nse_handler(httpx.Response(200, text="<html><body>blocked</body></html>")))
        with pytest.raises(InvalidPayloadError) as info:
            await nse.get_quote("RELIANCE")
        assert info.value.kind is PayloadKind.HTML_ERROR_PAGE
        assert info.value.preview.startswith("<html>")

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        nse = _nse(_nse_handler(httpx.Response(200, text='{"priceInfo": ')))
        with pytest.raises(InvalidPayloadError) as info:
            await nse.get_quote("RELIANCE")
        assert info.value.kind is PayloadKind.VALID_JSON

    @pytest.mark.asyncio
    async def test_json_without_price(self):
        nse = _nse(_nse_handler(httpx.Response(200, json={"msg": "no data"})))
        with pytest.raises(InvalidPayloadError, match="lastPrice"):
            await nse.get_quote("NOSUCH")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        nse = _nse(handler)
        with pytest.raises(ProviderNetworkError, match="timeout"):
            await nse.get_quote("RELIANCE")

    @pytest.mark.asyncio
    async def test_market_open(self):
        status = {"marketState": [{"market": "Capital Market", "marketStatus": "Open"}]}
        nse = _nse(_nse_handler(httpx.Response(200, json=status)))
        assert await nse.is_market_open() is True

    @pytest.mark.asyncio
    async def test_market_status_failure_reads_closed(self):
        nse = _nse(_nse_handler(httpx.Response(200, text="<html>maintenance</html>")))
        assert await nse.is_market_open() is False


# ---------------------------------------------------------------------------
# Yahoo
# ---------------------------------------------------------------------------


class TestYahooParsing:
    def test_scenario_b_payload(self):
        quote = _parse_chart(YAHOO_PAYLOAD, "RELIANCE")
        assert quote.source is QuoteSource.SECONDARY
        assert quote.symbol == "RELIANCE"
        assert quote.last_price == 2500.0
        assert quote.change == 25.5
        assert quote.percent_change == 1.03
        assert quote.company_name == "Reliance Industries Limited"

    def test_chart_previous_close_fallback(self):
        raw = {"chart": {"result": [{"meta": {"regularMarketPrice": 110, "chartPreviousClose": 100}}]}}
        assert _parse_chart(raw, "ZZZ").percent_change == 10.0

    def test_empty_result(self):
        raw = {"chart": {"result": None, "error": {"description": "No data found"}}}
        with pytest.raises(ValueError, match="No data found"):
            _parse_chart(raw, "ZZZ")

    def test_non_finite_previous_close_leaves_change_unset(self):
        raw = {"chart": {"result": [{"meta": {"regularMarketPrice": "110", "previousClose": "NaN"}}]}}
        quote = _parse_chart(raw, "ZZZ")
        assert quote.previous_close is None
        assert quote.change is None
        assert quote.percent_change is None

    @pytest.mark.parametrize("price", ["Infinity", "NaN", 1e400])
    def test_non_finite_price_is_rejected(self, price):
        raw = {"chart": {"result": [{"meta": {"regularMarketPrice": price, "previousClose": 100}}]}}
        with pytest.raises(ValueError):
            _parse_chart(raw, "ZZZ")

    def test_symbol_suffix(self):
        assert to_yahoo_symbol("reliance") == "RELIANCE.NS"
        assert to_yahoo_symbol("TCS.NS") == "TCS.NS"
        assert to_yahoo_symbol("TCS", suffix=".BO") == "TCS.BO"

    def test_company_name_fallback(self):
        assert company_name_for("TCS") == "Tata Consultancy Services Limited"
        assert company_name_for("ZZZ") == "ZZZ Limited"


class TestYahooProvider:
    @pytest.mark.asyncio
    async def test_requests_suffixed_symbol(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=json.dumps(YAHOO_PAYLOAD).encode())

        yahoo = _yahoo(handler)
        quote = await yahoo.get_quote("RELIANCE")
        assert quote.symbol == "RELIANCE"
        assert seen[0].url.path == "/v8/finance/chart/RELIANCE.NS"
        await yahoo.close()

    @pytest.mark.asyncio
    async def test_ampersand_symbol_is_escaped(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=YAHOO_PAYLOAD)

        await _yahoo(handler).get_quote("M&M")
        assert seen[0].url.raw_path.endswith(b"/M%26M.NS")

    @pytest.mark.asyncio
    async def test_429_is_rate_limited(self):
        yahoo = _yahoo(lambda request: httpx.Response(429, text="Too Many Requests"))
        with pytest.raises(RateLimitedError):
            await yahoo.get_quote("RELIANCE")

    @pytest.mark.asyncio
    async def test_other_4xx_is_network_error(self):
        yahoo = _yahoo(lambda request: httpx.Response(404, json={"chart": {"result": None}}))
        with pytest.raises(ProviderNetworkError):
            await yahoo.get_quote("RELIANCE")

    @pytest.mark.asyncio
    async def test_unparseable_chart(self):
        yahoo = _yahoo(lambda request: httpx.Response(200, json={"chart": {"result": []}}))
        with pytest.raises(InvalidPayloadError) as info:
            await yahoo.get_quote("RELIANCE")
        assert info.value.kind is PayloadKind.VALID_JSON


# ---------------------------------------------------------------------------
# Synthetic
# ---------------------------------------------------------------------------


class TestSyntheticProvider:
    def test_quote_is_labelled_and_consistent(self):
        provider = SyntheticProvider(rng=random.Random(7))
        for _ in range(50):
            quote = provider.generate("RELIANCE")
            assert quote.source is QuoteSource.SYNTHETIC
            assert quote.is_live is False
            assert 800.0 <= quote.last_price <= 1200.0
            expected = round((quote.last_price - quote.previous_close) / quote.previous_close * 100, 2)
            assert quote.percent_change == expected
            assert quote.day_low <= quote.last_price <= quote.day_high

    def test_seeded_rng_is_repeatable(self):
        a = SyntheticProvider(rng=random.Random(1)).generate("TCS")
        b = SyntheticProvider(rng=random.Random(1)).generate("TCS")
        assert a.last_price == b.last_price
        assert a.company_name == "Synthetic data for TCS"

    @pytest.mark.asyncio
    async def test_async_interface(self):
        quote = await SyntheticProvider().get_quote("INFY")
        assert quote.symbol == "INFY"
        assert quote.last_price > 0
