"""APScheduler configuration and lifecycle management."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from quotebot.config import (
    MARKET_TIMEZONE,
    NIFTY_100_SYMBOLS,
    SESSION_KEEPALIVE_MINUTES,
    STATS_LOG_MINUTES,
    WARMUP_MINUTES,
    WARMUP_SYMBOL_LIMIT,
)
from quotebot.jobs.quote_jobs import keep_session_alive, log_source_stats, warm_up_quotes
from quotebot.services.quote_service import QuoteService

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def create_scheduler(service: QuoteService) -> AsyncIOScheduler:
    """Create and configure the scheduler with all jobs.

    The service is passed as a job kwarg so job functions remain testable
    without global state.
    """
    scheduler = AsyncIOScheduler(timezone=MARKET_TIMEZONE)

    # -- NSE session keep-alive: refresh ahead of the 30 min staleness ------
    scheduler.add_job(
        keep_session_alive,
        trigger="interval",
        minutes=SESSION_KEEPALIVE_MINUTES,
        id="session_keepalive",
        name="Refresh NSE cookie session",
        kwargs={"service": service},
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # -- Source statistics to the log ----------------------------------------
    scheduler.add_job(
        log_source_stats,
        trigger="interval",
        minutes=STATS_LOG_MINUTES,
        id="source_stats_log",
        name="Log data source statistics",
        kwargs={"service": service},
        replace_existing=True,
        max_instances=1,
    )

    # -- Optional warm-up over the head of the Nifty 100 --------------------
    if WARMUP_MINUTES > 0:
        scheduler.add_job(
            warm_up_quotes,
            trigger="interval",
            minutes=WARMUP_MINUTES,
            id="quote_warmup",
            name="Warm up quotes for Nifty 100 leaders (trading hours only)",
            kwargs={"service": service, "symbols": NIFTY_100_SYMBOLS[:WARMUP_SYMBOL_LIMIT]},
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    return scheduler


def start_scheduler(service: QuoteService) -> AsyncIOScheduler:
    """Create, start, and return the scheduler."""
    global _scheduler
    _scheduler = create_scheduler(service)
    _scheduler.start()
    logger.info("Scheduler started with %d jobs", len(_scheduler.get_jobs()))
    return _scheduler


def stop_scheduler() -> None:
    """Gracefully shut down the scheduler."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
        _scheduler = None
