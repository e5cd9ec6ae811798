"""Data-source statistics and resilience health endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from quotebot.quotes import get_quote_service
from quotebot.services.quote_service import QuoteService
from quotebot.services.source_stats import success_rate

logger = logging.getLogger(__name__)


class SourceSummary(BaseModel):
    total_requests: int
    live_success_rate: float
    synthetic_share: float
    healthiest_source: str | None
    uptime_seconds: float


router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/sources")
async def sources(service: QuoteService = Depends(get_quote_service)) -> dict:
    """Per-provider success/failure counts, rates, and last source per symbol."""
    return dict(service.stats.snapshot())


@router.get("/summary", response_model=SourceSummary)
async def summary(service: QuoteService = Depends(get_quote_service)) -> SourceSummary:
    """Condensed view: how much traffic was answered live versus synthetic."""
    snap = service.stats.snapshot()
    providers = snap["providers"]
    live_success = sum(p["success"] for p in providers.values())
    live_failure = sum(p["failure"] for p in providers.values())
    answered = live_success + snap["synthetic"]

    attempted = {name: p for name, p in providers.items() if p["success"] + p["failure"]}
    healthiest = max(attempted, key=lambda n: attempted[n]["success_rate"]) if attempted else None

    return SourceSummary(
        total_requests=answered,
        live_success_rate=success_rate(live_success, live_failure),
        synthetic_share=round(snap["synthetic"] / answered * 100.0, 1) if answered else 0.0,
        healthiest_source=healthiest,
        uptime_seconds=snap["uptime_seconds"],
    )


@router.post("/reset")
async def reset(service: QuoteService = Depends(get_quote_service)) -> dict:
    """Zero every counter. Breakers, throttle records and the session are untouched."""
    service.stats.reset()
    logger.info("Statistics reset via API")
    return {"status": "ok"}


@router.get("/health")
async def health(service: QuoteService = Depends(get_quote_service)) -> dict:
    """Circuit breaker states, primary session age, throttle bookkeeping."""
    return service.health()
