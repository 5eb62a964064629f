# valuebets/services/offline.py
"""
Per-route offline caching, expressed as plain async strategy functions over a
versioned response cache.

    navigation (same origin)          network-first, cache refreshed in the background
    static assets / icons / manifest  cache-first, populated on miss
    /api/*                            network-first, cached copy on failure
    everything else                   cache-first, network fallback

A "network failure" is an exception from the fetch callable. HTTP error
statuses are responses and go back to the caller as-is.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Set, Tuple

log = logging.getLogger(__name__)

CACHE_PREFIX = "ps-"
PRECACHE: Tuple[str, ...] = ("/", "/manifest.json")
STATIC_PREFIXES: Tuple[str, ...] = ("/_next/", "/static/", "/icons/")
STATIC_FILES: Tuple[str, ...] = ("/manifest.json", "/favicon.ico")
MAX_ENTRIES = 256


@dataclass(frozen=True)
class CachedResponse:
    status: int
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class RequestInfo:
    path: str
    method: str = "GET"
    same_origin: bool = True
    navigate: bool = False
    query: str = ""

    @property
    def key(self) -> str:
        return f"{self.path}?{self.query}" if self.query else self.path


Fetch = Callable[[], Awaitable[CachedResponse]]


# -------------------------------
# Cache storage
# -------------------------------
class ResponseCache(Protocol):
    async def match(self, key: str) -> Optional[CachedResponse]: ...
    async def put(self, key: str, response: CachedResponse) -> None: ...


class MemoryResponseCache:
    """LRU over at most max_items responses."""

    def __init__(self, max_items: int = MAX_ENTRIES) -> None:
        self._max = max_items
        self._entries: "OrderedDict[str, CachedResponse]" = OrderedDict()

    async def match(self, key: str) -> Optional[CachedResponse]:
        hit = self._entries.get(key)
        if hit is not None:
            self._entries.move_to_end(key)
        return hit

    async def put(self, key: str, response: CachedResponse) -> None:
        self._entries[key] = response
        self._entries.move_to_end(key)
        while len(self._entries) > self._max:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class CacheStorage:
    """Named caches, like the browser's CacheStorage."""

    def __init__(self, max_items: int = MAX_ENTRIES) -> None:
        self.max_items = max_items
        self._caches: Dict[str, MemoryResponseCache] = {}

    def open(self, name: str) -> MemoryResponseCache:
        if name not in self._caches:
            self._caches[name] = MemoryResponseCache(self.max_items)
        return self._caches[name]

    def keys(self) -> List[str]:
        return list(self._caches)

    def delete(self, name: str) -> bool:
        return self._caches.pop(name, None) is not None


# -------------------------------
# Background writes
# -------------------------------
class BackgroundWriter:
    """Fire-and-forget cache writes; failures are logged, never raised to the response path."""

    def __init__(self) -> None:
        self._tasks: Set["asyncio.Task[None]"] = set()

    def spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._done)

    def _done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("background cache write failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)


Spawn = Callable[[Awaitable[None]], None]


# -------------------------------
# Strategies
# -------------------------------
async def network_first_refresh(key: str, fetch: Fetch, cache: ResponseCache, spawn: Spawn) -> CachedResponse:
    """Navigation: network wins; a good response replaces the cached copy in the background."""
    try:
        resp = await fetch()
    except Exception:
        cached = await cache.match(key)
        if cached is not None:
            return cached
        raise
    if resp.ok:
        spawn(cache.put(key, resp))
    return resp


async def network_first(key: str, fetch: Fetch, cache: ResponseCache, spawn: Spawn) -> CachedResponse:
    """API: network wins; on failure a cached copy if there is one, else the failure propagates."""
    try:
        return await fetch()
    except Exception:
        cached = await cache.match(key)
        if cached is None:
            raise
        log.info("serving cached %s after network failure", key)
        return cached


async def cache_first_populate(key: str, fetch: Fetch, cache: ResponseCache, spawn: Spawn) -> CachedResponse:
    """Static assets: cached copy wins; a miss goes to the network and fills the cache."""
    cached = await cache.match(key)
    if cached is not None:
        return cached
    resp = await fetch()
    if resp.ok:
        spawn(cache.put(key, resp))
    return resp


async def cache_first(key: str, fetch: Fetch, cache: ResponseCache, spawn: Spawn) -> CachedResponse:
    cached = await cache.match(key)
    if cached is not None:
        return cached
    return await fetch()


Strategy = Callable[[str, Fetch, ResponseCache, Spawn], Awaitable[CachedResponse]]


class ResourceClass(enum.Enum):
    NAVIGATION = "navigation"
    STATIC = "static"
    API = "api"
    OTHER = "other"


ROUTES: Dict[ResourceClass, Strategy] = {
    ResourceClass.NAVIGATION: network_first_refresh,
    ResourceClass.STATIC: cache_first_populate,
    ResourceClass.API: network_first,
    ResourceClass.OTHER: cache_first,
}


def classify(
    req: RequestInfo,
    static_prefixes: Iterable[str] = STATIC_PREFIXES,
    static_files: Iterable[str] = STATIC_FILES,
) -> ResourceClass:
    if req.path.startswith("/api/"):
        return ResourceClass.API
    if req.same_origin and (req.path.startswith(tuple(static_prefixes)) or req.path in tuple(static_files)):
        return ResourceClass.STATIC
    if req.same_origin and req.navigate:
        return ResourceClass.NAVIGATION
    return ResourceClass.OTHER


# -------------------------------
# Lifecycle + dispatch
# -------------------------------
@dataclass
class OfflineCachePolicy:
    storage: CacheStorage
    version: str = "v1"
    precache: Tuple[str, ...] = PRECACHE
    routes: Dict[ResourceClass, Strategy] = field(default_factory=lambda: dict(ROUTES))
    writer: BackgroundWriter = field(default_factory=BackgroundWriter)
    installed: bool = False
    active: bool = False
    clients_claimed: bool = False

    @property
    def cache_name(self) -> str:
        return f"{CACHE_PREFIX}{self.version}"

    @property
    def cache(self) -> MemoryResponseCache:
        return self.storage.open(self.cache_name)

    async def install(self, fetch_path: Callable[[str], Awaitable[CachedResponse]]) -> None:
        """
        Pre-cache the fixed asset list, all or nothing, then activate straight
        away without waiting for older versions to let go.
        """
        fetched: List[Tuple[str, CachedResponse]] = []
        for path in self.precache:
            resp = await fetch_path(path)
            if not resp.ok:
                raise RuntimeError(f"precache {path} -> {resp.status}")
            fetched.append((path, resp))
        cache = self.cache
        for path, resp in fetched:
            await cache.put(path, resp)
        self.installed = True
        await self.activate()

    async def activate(self) -> List[str]:
        """Drop every other cache version and take control of existing clients."""
        stale = [name for name in self.storage.keys() if name != self.cache_name]
        for name in stale:
            self.storage.delete(name)
        self.active = True
        self.clients_claimed = True
        if stale:
            log.info("offline cache %s active; dropped %s", self.cache_name, stale)
        return stale

    async def handle(self, req: RequestInfo, fetch: Fetch) -> CachedResponse:
        if req.method != "GET":
            return await fetch()
        kind = classify(req)
        # static assets: one entry per path, query ignored
        key = req.path if kind is ResourceClass.STATIC else req.key
        return await self.routes[kind](key, fetch, self.cache, self.writer.spawn)
