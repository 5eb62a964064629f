# valuebets/services/feed.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from ..core.errors import SourceUnavailable
from .ranking import sort_value_bets
from .storage import DateScopedCache

log = logging.getLogger(__name__)

Bets = List[Dict[str, Any]]
Fetcher = Callable[[str], Awaitable[Bets]]


class LockedEndpointFetcher:
    """GET <path>?date= -> value_bets list. Defaults to /api/value-bets-locked."""

    source = "value-bets-locked"

    def __init__(
        self,
        base_url: str,
        *,
        path: str = "/api/value-bets-locked",
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.path = path
        self._http = httpx.AsyncClient(base_url=base_url, headers=headers or {}, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __call__(self, date: Optional[str] = None) -> Bets:
        params = {"date": date} if date else {}
        r = await self._http.get(self.path, params=params)
        if not r.is_success:
            raise SourceUnavailable(self.source, f"HTTP {r.status_code}: {r.text}", status=r.status_code, body=r.text)
        payload = r.json()
        if isinstance(payload, list):
            return payload
        bets = payload.get("value_bets") if isinstance(payload, dict) else None
        return bets if isinstance(bets, list) else []


class CancelToken:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FeedState:
    bets: Bets = field(default_factory=list)
    loading: bool = True
    error: Optional[str] = None
    from_cache: bool = False


@dataclass
class Mount:
    token: CancelToken
    task: "asyncio.Task[Optional[FeedState]]"

    def unmount(self) -> None:
        self.token.cancel()


class ValueBetsFeed:
    """
    Per-date read-through cache over the locked endpoint.

    A cached date never re-fetches. A miss fetches once, sorts, and stores the
    sorted list. There is no fallback to another date's data. If the token is
    cancelled while the fetch is in flight, neither the callback nor the cache
    sees the result.
    """

    def __init__(self, fetch: Fetcher, cache: DateScopedCache):
        self.fetch = fetch
        self.cache = cache

    async def load(
        self,
        date: str,
        *,
        token: Optional[CancelToken] = None,
        on_change: Optional[Callable[[FeedState], None]] = None,
    ) -> Optional[FeedState]:
        token = token or CancelToken()

        def emit(state: FeedState) -> Optional[FeedState]:
            if token.cancelled:
                return None
            if on_change is not None:
                on_change(state)
            return state

        cached = self.cache.load(date)
        if cached is not None:
            return emit(FeedState(bets=cached, loading=False, from_cache=True))

        emit(FeedState(loading=True))
        try:
            raw = await self.fetch(date)
        except (SourceUnavailable, httpx.HTTPError, ValueError) as e:
            log.error("value bets fetch failed for %s: %s", date, e)
            return emit(FeedState(bets=[], loading=False, error=str(e)))

        if token.cancelled:
            return None
        ranked = sort_value_bets(raw)
        self.cache.save(date, ranked)
        return emit(FeedState(bets=ranked, loading=False))

    def mount(self, date: str, on_change: Callable[[FeedState], None]) -> Mount:
        """Start loading in the background; call .unmount() to drop the result."""
        token = CancelToken()
        task = asyncio.create_task(self.load(date, token=token, on_change=on_change))
        return Mount(token=token, task=task)
