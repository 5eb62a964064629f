# valuebets/deps.py
from __future__ import annotations

from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends, Request

from .clients.apifootball import ApiFootballClient
from .clients.binance import BinanceKlinesClient
from .clients.sportmonks import SportMonksClient
from .core.cache import TTLCache
from .core.config import INTERNAL_HEADER, Settings, get_settings
from .core.metrics import InMemoryMetrics, MetricsCollector, NullMetrics
from .services.feed import LockedEndpointFetcher
from .services.select_matches import MatchSelector
from .services.snapshots import SnapshotRepository
from .services.storage import JsonFileStore, KeyValueStore, MemoryStore
from .services.value_bets import ValueBetService

# process-local state for single-worker runs without SNAPSHOT_DIR
_memory_store = MemoryStore()
_select_cache = TTLCache(default_ttl=300, max_items=64)


# ---------- upstream clients (one per request, closed afterwards) ----------
async def get_api_football(settings: Settings = Depends(get_settings)) -> AsyncIterator[ApiFootballClient]:
    client = ApiFootballClient(settings.api_football_key, timeout=settings.http_timeout)
    try:
        yield client
    finally:
        await client.aclose()


async def get_sportmonks(settings: Settings = Depends(get_settings)) -> AsyncIterator[SportMonksClient]:
    client = SportMonksClient(settings.sportmonks_key, timeout=settings.http_timeout)
    try:
        yield client
    finally:
        await client.aclose()


async def get_binance(settings: Settings = Depends(get_settings)) -> AsyncIterator[BinanceKlinesClient]:
    client = BinanceKlinesClient(timeout=settings.http_timeout)
    try:
        yield client
    finally:
        await client.aclose()


# ---------- storage / metrics ----------
def get_store(settings: Settings = Depends(get_settings)) -> KeyValueStore:
    """SNAPSHOT_DIR set -> JSON files on disk; otherwise process memory."""
    if settings.snapshot_dir:
        return JsonFileStore(settings.snapshot_dir)
    return _memory_store


def get_snapshots(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> SnapshotRepository:
    return SnapshotRepository(store, ttl=settings.snapshot_ttl_seconds)


@lru_cache(maxsize=1)
def _metrics(enabled: bool) -> MetricsCollector:
    return InMemoryMetrics() if enabled else NullMetrics()


def get_metrics(settings: Settings = Depends(get_settings)) -> MetricsCollector:
    return _metrics(settings.metrics_enabled)


# ---------- services ----------
def get_value_bet_service(
    client: ApiFootballClient = Depends(get_api_football),
    settings: Settings = Depends(get_settings),
    metrics: MetricsCollector = Depends(get_metrics),
) -> ValueBetService:
    return ValueBetService(
        client,
        trusted=settings.trusted_bookmakers(),
        tz=settings.tz_display,
        metrics=metrics,
    )


def get_match_selector(
    client: SportMonksClient = Depends(get_sportmonks),
    settings: Settings = Depends(get_settings),
) -> MatchSelector:
    return MatchSelector(
        client, tz=settings.tz_display, cache=_select_cache, ttl=settings.select_matches_ttl_seconds
    )


def sibling_base_url(request: Request, settings: Settings) -> str:
    """
    Our own origin for in-deployment calls. SELF_BASE_URL wins; otherwise the
    address the server is bound to. Host and X-Forwarded-* come from the
    client and never pick the target.
    """
    if settings.self_base_url:
        return settings.self_base_url.rstrip("/")
    scheme = request.url.scheme
    server = request.scope.get("server")
    host, port = server or ("localhost", None)
    if port is None or (scheme, port) in (("http", 80), ("https", 443)):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


async def get_live_fetcher(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[LockedEndpointFetcher]:
    """Fetches /api/value-bets on this same deployment, bypassing the snapshot."""
    fetcher = LockedEndpointFetcher(
        sibling_base_url(request, settings),
        path="/api/value-bets",
        headers={INTERNAL_HEADER: "1"},
        timeout=settings.http_timeout,
    )
    try:
        yield fetcher
    finally:
        await fetcher.aclose()
