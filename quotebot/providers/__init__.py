"""Quote providers: NSE (primary), Yahoo (secondary), synthetic (last resort)."""

from quotebot.providers.base import QuoteProvider
from quotebot.providers.nse import NseProvider
from quotebot.providers.synthetic import SyntheticProvider
from quotebot.providers.yahoo import YahooProvider

__all__ = ["NseProvider", "QuoteProvider", "SyntheticProvider", "YahooProvider"]
