"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quotebot.config import LOG_LEVEL, SCHEDULER_ENABLED
from quotebot.jobs.scheduler import start_scheduler, stop_scheduler
from quotebot.quotes import router as quotes_router
from quotebot.services.quote_service import build_quote_service
from quotebot.stats import router as stats_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the quote service on startup, close its HTTP clients on shutdown."""
    app.state.quote_service = build_quote_service()
    app.state.scheduler = (
        start_scheduler(app.state.quote_service) if SCHEDULER_ENABLED else None
    )

    logger.info("Quotebot started")
    yield

    stop_scheduler()
    await app.state.quote_service.close()
    logger.info("Quotebot stopped")


app = FastAPI(title="Quotebot", lifespan=lifespan)
app.include_router(quotes_router)
app.include_router(stats_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health() -> dict:
    """Return service health status."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
