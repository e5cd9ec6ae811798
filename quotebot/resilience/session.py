"""Cookie session for the primary provider.

The NSE API only answers clients that first loaded the public site and hold
the cookies it hands out.  The session is an immutable snapshot swapped in
whole by :class:`SessionManager`, so concurrent readers never see a
half-written cookie set.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

import httpx

from quotebot.config import (
    ACCEPT_HEADERS,
    SESSION_INIT_KEY,
    SESSION_REFRESH_INTERVAL_SECONDS,
    USER_AGENTS,
)
from quotebot.resilience.throttle import RequestThrottle

logger = logging.getLogger(__name__)

_NAVIGATION_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def random_accept_header() -> str:
    return random.choice(ACCEPT_HEADERS)


def parse_set_cookie(values: Iterable[str]) -> dict[str, str]:
    """Extract ``name -> value`` from raw ``Set-Cookie`` header values.

    Attributes after the first ``;`` (Path, Expires, ...) are dropped, and
    values without an ``=`` are ignored.
    """
    cookies: dict[str, str] = {}
    for raw in values:
        pair = raw.split(";", 1)[0]
        name, sep, value = pair.partition("=")
        name = name.strip()
        if sep and name:
            cookies[name] = value.strip()
    return cookies


@dataclass(frozen=True)
class Session:
    """Cookies obtained from the primary provider and when they were fetched."""

    cookies: Mapping[str, str] = field(default_factory=dict)
    refreshed_at: float = 0.0

    def is_stale(self, now: float, max_age: float) -> bool:
        return not self.cookies or (now - self.refreshed_at) > max_age

    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self.cookies.items())


class SessionManager:
    """Acquires, refreshes and invalidates the primary provider's cookie session."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        throttle: RequestThrottle,
        *,
        provider: str = "nse",
        refresh_interval: float = SESSION_REFRESH_INTERVAL_SECONDS,
        init_key: str = SESSION_INIT_KEY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._throttle = throttle
        self._provider = provider
        self._refresh_interval = refresh_interval
        self._init_key = init_key
        self._clock = clock
        self._session = Session()
        self._refresh_lock = asyncio.Lock()
        self.refresh_count = 0

    @property
    def session(self) -> Session:
        return self._session

    def is_stale(self) -> bool:
        return self._session.is_stale(self._clock(), self._refresh_interval)

    def cookie_header(self) -> str:
        return self._session.cookie_header()

    async def ensure_valid(self) -> bool:
        """Return True if a usable session exists, refreshing it first if stale.

        Concurrent callers that find the session stale share a single refresh.
        """
        if not self.is_stale():
            return True
        async with self._refresh_lock:
            if not self.is_stale():
                return True
            return await self._refresh()

    async def refresh(self) -> bool:
        """Replace the session now, whatever its age."""
        async with self._refresh_lock:
            return await self._refresh()

    async def _refresh(self) -> bool:
        logger.info("Initializing %s session", self._provider)
        self.refresh_count += 1

        await self._throttle.wait_turn(self._provider, self._init_key)
        await self._throttle.add_random_delay()

        headers = dict(_NAVIGATION_HEADERS)
        headers["User-Agent"] = random_user_agent()
        try:
            resp = await self._client.get("/", headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Failed to initialize %s session: %s", self._provider, exc)
            self._session = Session()
            return False

        # Redirect hops may set cookies too; later responses win on name clashes.
        cookies = parse_set_cookie(
            value for hop in [*resp.history, resp] for value in hop.headers.get_list("set-cookie")
        )
        # Cookies are sent explicitly from the managed session; keep the
        # client's own jar empty so an invalidated session really is gone.
        self._client.cookies.clear()

        if not cookies:
            logger.warning(
                "%s session establishment failed -- no cookies received (HTTP %d)",
                self._provider, resp.status_code,
            )
            self._session = Session()
            return False

        self._session = Session(cookies=cookies, refreshed_at=self._clock())
        logger.info("%s session established with %d cookies", self._provider, len(cookies))
        return True

    def invalidate(self) -> None:
        """Drop the session so the next :meth:`ensure_valid` performs a full refresh."""
        self._session = Session()
        self._client.cookies.clear()
        logger.info("%s session invalidated", self._provider)

    def snapshot(self) -> dict:
        session = self._session
        age = self._clock() - session.refreshed_at if session.cookies else None
        return {
            "cookies": len(session.cookies),
            "age_seconds": round(age, 1) if age is not None else None,
            "stale": self.is_stale(),
            "refresh_count": self.refresh_count,
        }
