# valuebets/routers/cron.py
from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from ..clients.apifootball import ApiFootballClient
from ..core.config import Settings, get_settings
from ..core.errors import SourceUnavailable
from ..deps import get_api_football, get_live_fetcher, get_snapshots
from ..schemas.common import CronResult
from ..services.feed import LockedEndpointFetcher
from ..services.snapshots import SnapshotRepository, capture_closing_odds, rebuild_snapshot
from ..services.utils import ymd_in_tz

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])

NO_STORE = {"Cache-Control": "no-store"}


@router.get(
    "/rebuild",
    response_model=CronResult,
    response_model_exclude_none=True,
    summary="Freeze today's value bets as a new snapshot revision",
)
async def rebuild(
    response: Response,
    fetch_live: LockedEndpointFetcher = Depends(get_live_fetcher),
    snapshots: SnapshotRepository = Depends(get_snapshots),
    settings: Settings = Depends(get_settings),
):
    response.headers.update(NO_STORE)
    day = ymd_in_tz(settings.tz_display)
    try:
        return await rebuild_snapshot(snapshots, fetch_live, day, limit=settings.vb_limit)
    except (SourceUnavailable, httpx.HTTPError, ValueError) as e:
        log.error("snapshot rebuild for %s failed: %s", day, e)
        return JSONResponse(status_code=500, content=CronResult(ok=False, error=str(e)).body(), headers=NO_STORE)


@router.get(
    "/closing-capture",
    response_model=CronResult,
    response_model_exclude_none=True,
    summary="Record trusted-bookmaker closing odds for picks near kickoff",
)
async def closing_capture(
    response: Response,
    client: ApiFootballClient = Depends(get_api_football),
    snapshots: SnapshotRepository = Depends(get_snapshots),
    settings: Settings = Depends(get_settings),
):
    response.headers.update(NO_STORE)
    return await capture_closing_odds(
        snapshots,
        client,
        ymd_in_tz(settings.tz_display),
        trusted=settings.trusted_bookmakers(),
        window=(settings.clv_window_min, settings.clv_window_max),
    )
