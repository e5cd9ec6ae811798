"""Normalized quote record shared by every provider tier."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone


class QuoteSource(str, enum.Enum):
    """Which tier of the fallback chain produced a quote."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    SYNTHETIC = "synthetic"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compute_change(last_price: float, previous_close: float | None) -> tuple[float | None, float | None]:
    """Return ``(change, percent_change)`` for a last price against a previous close.

    Percent change is rounded to 2 decimals.  Both values are ``None`` when
    there is no usable previous close.
    """
    if previous_close is None or not math.isfinite(previous_close) or previous_close <= 0:
        return None, None
    change = round(last_price - previous_close, 4)
    percent_change = round((last_price - previous_close) / previous_close * 100.0, 2)
    return change, percent_change


@dataclass(frozen=True)
class Quote:
    """Immutable price/volume snapshot for one symbol.

    ``last_price`` must be strictly positive.  ``source`` tells downstream
    consumers how much to trust the numbers.
    """

    symbol: str
    last_price: float
    source: QuoteSource
    company_name: str | None = None
    previous_close: float | None = None
    open_price: float | None = None
    day_high: float | None = None
    day_low: float | None = None
    change: float | None = None
    percent_change: float | None = None
    volume: int | None = None
    timestamp: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.last_price is None or not (math.isfinite(self.last_price) and self.last_price > 0):
            raise ValueError(f"last_price must be positive and finite, got {self.last_price!r}")

    @property
    def is_live(self) -> bool:
        return self.source is not QuoteSource.SYNTHETIC

    def to_dict(self) -> dict:
        """JSON-friendly representation for the HTTP layer."""
        return {
            "symbol": self.symbol,
            "company_name": self.company_name,
            "last_price": self.last_price,
            "previous_close": self.previous_close,
            "open": self.open_price,
            "day_high": self.day_high,
            "day_low": self.day_low,
            "change": self.change,
            "percent_change": self.percent_change,
            "volume": self.volume,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }
