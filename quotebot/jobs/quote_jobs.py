"""Job functions for the background scheduler: session keep-alive, stats log, warm-up."""

from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from quotebot.config import MARKET_HOURS, MARKET_TIMEZONE
from quotebot.services.quote_service import QuoteService

logger = logging.getLogger(__name__)

_MARKET_TZ = ZoneInfo(MARKET_TIMEZONE)


# ---------------------------------------------------------------------------
# Market-hours helper
# ---------------------------------------------------------------------------


def is_trading_hours(now_local: datetime) -> bool:
    """True on weekdays between the configured open and close (exchange time)."""
    if now_local.weekday() >= 5:
        return False
    open_time = datetime.strptime(MARKET_HOURS["open"], "%H:%M").time()
    close_time = datetime.strptime(MARKET_HOURS["close"], "%H:%M").time()
    return open_time <= now_local.time() <= close_time


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


async def keep_session_alive(service: QuoteService) -> None:
    """Refresh the primary provider's cookie session before it goes stale."""
    ok = await service.primary.session.refresh()
    if ok:
        logger.info("Session keep-alive: refreshed")
    else:
        logger.warning("Session keep-alive: refresh failed, next request will retry")


async def log_source_stats(service: QuoteService) -> None:
    """Write one summary line per provider plus breaker state to the log."""
    snap = service.stats.snapshot()
    for name, counts in snap["providers"].items():
        logger.info(
            "Source %s: %d ok / %d failed (%.1f%%)",
            name, counts["success"], counts["failure"], counts["success_rate"],
        )
    logger.info(
        "Synthetic answers: %d | uptime %.0fs", snap["synthetic"], snap["uptime_seconds"],
    )
    for name, breaker in service.health()["breakers"].items():
        if breaker["state"] != "CLOSED":
            logger.warning(
                "Circuit breaker %s is %s (%d failures, last: %s)",
                name, breaker["state"], breaker["failure_count"], breaker["last_error"],
            )


async def warm_up_quotes(
    service: QuoteService,
    symbols: list[str],
    now_local: datetime | None = None,
) -> int:
    """Run the fallback chain for *symbols* during trading hours.

    Returns the number of live (non-synthetic) quotes obtained.
    """
    now_local = now_local or datetime.now(_MARKET_TZ)
    if not is_trading_hours(now_local):
        logger.debug("Warm-up skipped: outside trading hours (%s)", now_local.isoformat())
        return 0

    quotes = await service.get_quotes(symbols)
    live = sum(1 for q in quotes if q.is_live)
    logger.info("Warm-up: %d/%d symbols answered live", live, len(quotes))
    return live
