"""Per-provider success/failure counters for the health and stats endpoints."""

from __future__ import annotations

import logging
import time
from collections import Counter
from datetime import datetime, timezone
from typing import TypedDict

logger = logging.getLogger(__name__)

SYNTHETIC = "synthetic"


class ProviderCounts(TypedDict):
    success: int
    failure: int
    success_rate: float   # percent, one decimal; 0.0 before any attempt


class StatsSnapshot(TypedDict):
    providers: dict[str, ProviderCounts]
    synthetic: int
    total_success: int
    total_failure: int
    symbol_sources: dict[str, str]
    last_failures: dict[str, str]
    started_at: str       # ISO-8601
    uptime_seconds: float


def success_rate(success: int, failure: int) -> float:
    total = success + failure
    return round(success / total * 100.0, 1) if total else 0.0


class SourceStatsTracker:
    """Additive counters written by the quote service after every attempt.

    All updates are single increments or single-key assignments made on the
    event loop, and :meth:`snapshot` copies the maps, so readers never hold up
    writers and never see a structure being rebuilt.
    """

    def __init__(self, providers: tuple[str, ...] = ("nse", "yahoo")) -> None:
        self._providers = providers
        self._success: Counter[str] = Counter()
        self._failure: Counter[str] = Counter()
        self._synthetic = 0
        self._symbol_sources: dict[str, str] = {}
        self._last_failures: dict[str, str] = {}
        self._started_at = datetime.now(timezone.utc)
        self._started_mono = time.monotonic()

    def record_success(self, provider: str, symbol: str) -> None:
        self._success[provider] += 1
        self._symbol_sources[symbol] = provider
        logger.info("%s success: %s (total %d)", provider, symbol, self._success[provider])

    def record_failure(self, provider: str, symbol: str, reason: str) -> None:
        self._failure[provider] += 1
        self._last_failures[provider] = reason[:200]
        logger.warning(
            "%s failed: %s - %s (total failures %d)",
            provider, symbol, reason, self._failure[provider],
        )

    def record_synthetic(self, symbol: str) -> None:
        self._synthetic += 1
        self._symbol_sources[symbol] = SYNTHETIC
        logger.warning("Synthetic fallback: %s (total %d)", symbol, self._synthetic)

    def counts(self, provider: str) -> tuple[int, int]:
        return self._success[provider], self._failure[provider]

    @property
    def synthetic_count(self) -> int:
        return self._synthetic

    def snapshot(self) -> StatsSnapshot:
        success = dict(self._success)
        failure = dict(self._failure)
        names = list(self._providers) + sorted((set(success) | set(failure)) - set(self._providers))

        providers: dict[str, ProviderCounts] = {}
        for name in names:
            ok, bad = success.get(name, 0), failure.get(name, 0)
            providers[name] = {"success": ok, "failure": bad, "success_rate": success_rate(ok, bad)}

        synthetic = self._synthetic
        return {
            "providers": providers,
            "synthetic": synthetic,
            "total_success": sum(success.values()) + synthetic,
            "total_failure": sum(failure.values()),
            "symbol_sources": dict(self._symbol_sources),
            "last_failures": dict(self._last_failures),
            "started_at": self._started_at.isoformat(),
            "uptime_seconds": round(time.monotonic() - self._started_mono, 1),
        }

    def reset(self) -> None:
        self._success.clear()
        self._failure.clear()
        self._synthetic = 0
        self._symbol_sources.clear()
        self._last_failures.clear()
        logger.info("Data source statistics reset")
