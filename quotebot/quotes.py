"""Quote endpoints: single symbol, secondary-only, batches, and market status."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from quotebot.config import MAX_SYMBOLS_PER_REQUEST
from quotebot.services.quote_service import QuoteService, is_valid_symbol, normalize_symbol

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class QuotesRequest(BaseModel):
    symbols: list[str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_quote_service(request: Request) -> QuoteService:
    """FastAPI dependency: the service built in the app lifespan."""
    return request.app.state.quote_service


def _validated_symbol(symbol: str) -> str:
    normalized = normalize_symbol(symbol)
    if not is_valid_symbol(normalized):
        raise HTTPException(status_code=400, detail=f"Invalid symbol {symbol!r}")
    return normalized


def _split_symbols(raw: list[str]) -> list[str]:
    """Flatten comma-separated entries, validate each, and enforce the batch cap."""
    symbols: list[str] = []
    for entry in raw:
        for part in entry.split(","):
            if part.strip():
                symbols.append(_validated_symbol(part))
    if not symbols:
        raise HTTPException(status_code=400, detail="At least one symbol is required")
    if len(symbols) > MAX_SYMBOLS_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"At most {MAX_SYMBOLS_PER_REQUEST} symbols per request",
        )
    return symbols


async def _batch(service: QuoteService, symbols: list[str]) -> dict:
    quotes = await service.get_quotes(symbols)
    return {
        "quotes": [q.to_dict() for q in quotes],
        "count": len(quotes),
        "live": sum(1 for q in quotes if q.is_live),
    }


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api", tags=["quotes"])


@router.get("/quote/{symbol}")
async def quote(symbol: str, service: QuoteService = Depends(get_quote_service)) -> dict:
    """Return the best available quote; ``source`` says which tier answered."""
    result = await service.get_quote(_validated_symbol(symbol))
    return result.to_dict()


@router.get("/quote/{symbol}/secondary")
async def quote_from_secondary(
    symbol: str, service: QuoteService = Depends(get_quote_service)
) -> dict:
    """Same as ``/quote`` but never touches the primary provider."""
    result = await service.get_quote_from_secondary(_validated_symbol(symbol))
    return result.to_dict()


@router.get("/quotes")
async def quotes(
    symbols: list[str] = Query(..., description="Comma-separated or repeated symbols"),
    service: QuoteService = Depends(get_quote_service),
) -> dict:
    """Fetch several quotes concurrently (duplicates collapsed, order kept)."""
    return await _batch(service, _split_symbols(symbols))


@router.post("/quotes")
async def quotes_from_body(
    body: QuotesRequest, service: QuoteService = Depends(get_quote_service)
) -> dict:
    """Body variant of ``GET /quotes`` for long symbol lists."""
    return await _batch(service, _split_symbols(body.symbols))


@router.get("/market-status")
async def market_status(service: QuoteService = Depends(get_quote_service)) -> dict:
    """Whether the NSE capital market is open; any failure reads as closed."""
    is_open = await service.primary.is_market_open()
    return {
        "market_open": is_open,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
