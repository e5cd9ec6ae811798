"""Last-resort placeholder quotes when every live provider has failed."""

from __future__ import annotations

import logging
import random

from quotebot.config import SYNTHETIC_BASE_PRICE, SYNTHETIC_PRICE_SPREAD
from quotebot.models import Quote, QuoteSource, compute_change
from quotebot.providers.base import QuoteProvider

logger = logging.getLogger(__name__)


class SyntheticProvider(QuoteProvider):
    """Generates plausible quotes around a nominal base price. Never fails."""

    name = "synthetic"

    def __init__(
        self,
        base_price: float = SYNTHETIC_BASE_PRICE,
        spread: float = SYNTHETIC_PRICE_SPREAD,
        rng: random.Random | None = None,
    ) -> None:
        self._base_price = base_price
        self._spread = spread
        self._rng = rng or random.Random()

    def generate(self, symbol: str) -> Quote:
        rng = self._rng
        factor = rng.uniform(1.0 - self._spread, 1.0 + self._spread)
        last_price = max(round(self._base_price * factor, 2), 0.01)
        previous_close = max(round(last_price * rng.uniform(0.975, 1.025), 2), 0.01)
        open_price = round(previous_close * rng.uniform(0.99, 1.01), 2)
        change, percent_change = compute_change(last_price, previous_close)

        quote = Quote(
            symbol=symbol,
            company_name=f"Synthetic data for {symbol}",
            last_price=last_price,
            previous_close=previous_close,
            open_price=open_price,
            day_high=round(max(last_price, open_price) * rng.uniform(1.0, 1.02), 2),
            day_low=round(min(last_price, open_price) * rng.uniform(0.98, 1.0), 2),
            change=change,
            percent_change=percent_change,
            volume=rng.randint(100_000, 1_000_000),
            source=QuoteSource.SYNTHETIC,
        )
        logger.info("Generated synthetic quote for %s at %.2f", symbol, last_price)
        return quote

    async def get_quote(self, symbol: str) -> Quote:
        return self.generate(symbol)
