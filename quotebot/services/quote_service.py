"""Fallback orchestration across the quote providers.

Order of tiers for every request:

1. NSE (primary) -- paced per symbol, needs a live cookie session.
2. Yahoo (secondary) -- paced per symbol, guarded by a circuit breaker,
   one extra attempt after HTTP 429.
3. Synthetic -- always succeeds.

Every provider failure is caught here and turned into "try the next tier",
so ``get_quote`` always returns a :class:`Quote`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable

from quotebot.config import (
    BREAKER_FAILURE_THRESHOLD,
    BREAKER_TIMEOUT_SECONDS,
    MAX_SYMBOL_LENGTH,
    QUOTE_REQUEST_TIMEOUT_SECONDS,
    RATE_LIMIT_MAX_RETRIES,
    RATE_LIMIT_RETRY_DELAY_SECONDS,
)
from quotebot.errors import (
    AuthenticationError,
    InvalidPayloadError,
    QuoteSourceError,
    RateLimitedError,
    SessionUnavailableError,
)
from quotebot.models import Quote
from quotebot.providers.nse import NseProvider
from quotebot.providers.synthetic import SyntheticProvider
from quotebot.providers.yahoo import YahooProvider
from quotebot.resilience.breaker import CircuitBreaker
from quotebot.resilience.throttle import RequestThrottle
from quotebot.services.source_stats import SourceStatsTracker

logger = logging.getLogger(__name__)

_SYMBOL_RE = re.compile(rf"^[A-Z0-9&\-\.]{{1,{MAX_SYMBOL_LENGTH}}}$")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def normalize_symbol(symbol: str | None) -> str:
    return (symbol or "").strip().upper()


def is_valid_symbol(symbol: str) -> bool:
    """Upper-case ticker of 1-20 characters (letters, digits, ``&``, ``-``, ``.``)."""
    return bool(_SYMBOL_RE.match(symbol))


def describe_failure(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


@dataclass(frozen=True)
class RateLimitRetryPolicy:
    """How the secondary tier reacts to HTTP 429: a fixed pause, then a bounded retry."""

    max_retries: int = RATE_LIMIT_MAX_RETRIES
    delay_seconds: float = RATE_LIMIT_RETRY_DELAY_SECONDS

    def should_retry(self, attempt: int, exc: BaseException) -> bool:
        """*attempt* is the 1-based number of the attempt that just failed."""
        return isinstance(exc, RateLimitedError) and attempt <= self.max_retries


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class QuoteService:
    """Total quote lookup: primary, then secondary, then synthetic."""

    def __init__(
        self,
        primary: NseProvider,
        secondary: YahooProvider,
        synthetic: SyntheticProvider,
        throttle: RequestThrottle,
        stats: SourceStatsTracker,
        *,
        secondary_breaker: CircuitBreaker | None = None,
        retry_policy: RateLimitRetryPolicy | None = None,
        request_timeout: float | None = QUOTE_REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._synthetic = synthetic
        self._throttle = throttle
        self._stats = stats
        self._retry_policy = retry_policy or RateLimitRetryPolicy()
        self._request_timeout = request_timeout
        self._sleep = sleep
        # Timed-out lookups still running; held here until they finish.
        self._background: set[asyncio.Task] = set()
        self._breakers: dict[str, CircuitBreaker] = {
            secondary.name: secondary_breaker
            or CircuitBreaker(
                provider_name=secondary.name,
                failure_threshold=BREAKER_FAILURE_THRESHOLD,
                timeout_seconds=BREAKER_TIMEOUT_SECONDS,
            ),
        }

    @property
    def stats(self) -> SourceStatsTracker:
        return self._stats

    @property
    def primary(self) -> NseProvider:
        return self._primary

    @property
    def throttle(self) -> RequestThrottle:
        return self._throttle

    def breaker(self, provider: str) -> CircuitBreaker:
        return self._breakers[provider]

    async def close(self) -> None:
        await self._primary.close()
        await self._secondary.close()

    # -- Public interface ----------------------------------------------------

    async def get_quote(self, symbol: str) -> Quote:
        """Return a quote for *symbol* from the first tier that succeeds. Never raises."""
        symbol = normalize_symbol(symbol)
        if not is_valid_symbol(symbol):
            logger.warning("Invalid symbol %r -- answering with synthetic data", symbol)
            return self._synthetic_quote(symbol)

        quote = await self._with_deadline(self._fetch_live(symbol), symbol)
        if quote is not None:
            return quote
        logger.warning("All live providers failed for %s, using synthetic data", symbol)
        return self._synthetic_quote(symbol)

    async def get_quotes(self, symbols: list[str]) -> list[Quote]:
        """Fetch several symbols concurrently; duplicates are fetched once, order kept."""
        unique: list[str] = []
        for raw in symbols:
            symbol = normalize_symbol(raw)
            if symbol and symbol not in unique:
                unique.append(symbol)
        if not unique:
            return []
        logger.info("Fetching quotes for %d symbols", len(unique))
        return list(await asyncio.gather(*(self.get_quote(s) for s in unique)))

    async def get_quote_from_secondary(self, symbol: str) -> Quote:
        """Skip the primary provider entirely; still breaker-guarded and total."""
        symbol = normalize_symbol(symbol)
        if not is_valid_symbol(symbol):
            return self._synthetic_quote(symbol)
        quote = await self._with_deadline(self._try_secondary(symbol), symbol)
        return quote if quote is not None else self._synthetic_quote(symbol)

    def health(self) -> dict:
        return {
            "breakers": {name: b.snapshot() for name, b in self._breakers.items()},
            "session": self._primary.session.snapshot(),
            "throttle": self._throttle.stats(),
            "sources": self._stats.snapshot(),
        }

    # -- Tiers ---------------------------------------------------------------

    async def _with_deadline(self, work: Awaitable[Quote | None], symbol: str) -> Quote | None:
        """Bound the live tiers by the request timeout.

        The in-flight work is shielded rather than cancelled; if it finishes
        late its result is simply dropped.
        """
        if self._request_timeout is None:
            return await work
        task = asyncio.ensure_future(work)
        try:
            return await asyncio.wait_for(asyncio.shield(task), self._request_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Live lookup for %s exceeded %.1fs -- discarding its result",
                symbol, self._request_timeout,
            )
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            return None

    async def _fetch_live(self, symbol: str) -> Quote | None:
        quote = await self._try_primary(symbol)
        if quote is not None:
            return quote
        return await self._try_secondary(symbol)

    async def _try_primary(self, symbol: str) -> Quote | None:
        name = self._primary.name
        try:
            await self._throttle.wait_turn(name, symbol)
            if not await self._primary.session.ensure_valid():
                raise SessionUnavailableError(name, "session establishment failed")
            logger.info("Requesting %s from %s", symbol, name)
            quote = await self._primary.get_quote(symbol)
        except AuthenticationError as exc:
            self._primary.session.invalidate()
            self._stats.record_failure(name, symbol, describe_failure(exc))
            return None
        except InvalidPayloadError as exc:
            logger.warning(
                "%s sent %s for %s (preview: %r)", name, exc.kind.value, symbol, exc.preview,
            )
            self._stats.record_failure(name, symbol, describe_failure(exc))
            return None
        except QuoteSourceError as exc:
            self._stats.record_failure(name, symbol, describe_failure(exc))
            return None
        except Exception as exc:
            logger.exception("Unexpected error fetching %s from %s", symbol, name)
            self._stats.record_failure(name, symbol, describe_failure(exc))
            return None

        self._stats.record_success(name, symbol)
        return quote

    async def _try_secondary(self, symbol: str) -> Quote | None:
        name = self._secondary.name
        breaker = self._breakers[name]
        if breaker.is_open():
            logger.warning("%s circuit breaker is OPEN -- skipping %s", name, symbol)
            return None

        attempt = 1
        while True:
            try:
                await self._throttle.wait_turn(name, symbol)
                logger.info("Requesting %s from %s (attempt %d)", symbol, name, attempt)
                quote = await self._secondary.get_quote(symbol)
            except QuoteSourceError as exc:
                self._stats.record_failure(name, symbol, describe_failure(exc))
                if self._retry_policy.should_retry(attempt, exc):
                    logger.info(
                        "%s rate limited for %s -- retrying in %.1fs",
                        name, symbol, self._retry_policy.delay_seconds,
                    )
                    await self._sleep(self._retry_policy.delay_seconds)
                    attempt += 1
                    continue
                breaker.record_failure(describe_failure(exc))
                return None
            except Exception as exc:
                logger.exception("Unexpected error fetching %s from %s", symbol, name)
                self._stats.record_failure(name, symbol, describe_failure(exc))
                breaker.record_failure(describe_failure(exc))
                return None

            breaker.record_success()
            self._stats.record_success(name, symbol)
            return quote

    def _synthetic_quote(self, symbol: str) -> Quote:
        quote = self._synthetic.generate(symbol)
        self._stats.record_synthetic(symbol)
        return quote


def build_quote_service() -> QuoteService:
    """Wire the providers, pacing, breaker and statistics from ``quotebot.config``.

    Created once at startup and kept for the life of the process; all of its
    state is in memory and rebuilt from scratch on restart.
    """
    throttle = RequestThrottle.from_config()
    return QuoteService(
        primary=NseProvider(throttle),
        secondary=YahooProvider(throttle),
        synthetic=SyntheticProvider(),
        throttle=throttle,
        stats=SourceStatsTracker(providers=(NseProvider.name, YahooProvider.name)),
    )
