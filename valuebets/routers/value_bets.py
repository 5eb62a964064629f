# valuebets/routers/value_bets.py
from __future__ import annotations

import logging
from typing import Any, Dict, Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..core.config import INTERNAL_HEADER, Settings, get_settings
from ..core.errors import SourceUnavailable
from ..deps import get_snapshots, get_value_bet_service
from ..schemas.common import ErrorBody
from ..schemas.query import DateQuery
from ..schemas.value_bets import ValueBetsResponse
from ..services.snapshots import SnapshotRepository, to_pick_list
from ..services.utils import ymd_in_tz
from ..services.value_bets import ValueBetService

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["value-bets"])

FETCH_FAILED = "Failed to fetch value bets"


async def _value_bets(
    day: str,
    service: ValueBetService,
    snapshots: SnapshotRepository,
    *,
    live_only: bool,
) -> Union[Dict[str, Any], JSONResponse]:
    if not live_only:
        snap = snapshots.last(day)
        if snap is not None:
            return {
                "value_bets": to_pick_list(snap),
                "day": day,
                "source": "snapshot",
                "built_at": snap.get("built_at"),
            }
    try:
        picks = await service.build(day)
    except SourceUnavailable as e:
        log.error("value bets for %s failed: %s", day, e)
        return JSONResponse(status_code=500, content={"error": FETCH_FAILED})
    return {"value_bets": [p.model_dump() for p in picks], "day": day, "source": "live"}


@router.get(
    "/value-bets-locked",
    response_model=ValueBetsResponse,
    responses={500: {"model": ErrorBody}},
    summary="Ranked value bets for a date",
    description=(
        "Serves the day's frozen snapshot when one exists, otherwise builds the list live: "
        "fixtures -> odds -> picks -> ranked (MODEL+ODDS first, edge desc, model_prob desc)."
    ),
)
async def value_bets_locked(
    q: DateQuery = Depends(),
    service: ValueBetService = Depends(get_value_bet_service),
    snapshots: SnapshotRepository = Depends(get_snapshots),
    settings: Settings = Depends(get_settings),
):
    day = q.date or ymd_in_tz(settings.tz_display)
    return await _value_bets(day, service, snapshots, live_only=False)


@router.get(
    "/value-bets",
    response_model=ValueBetsResponse,
    responses={500: {"model": ErrorBody}},
    summary="Alias of /api/value-bets-locked",
    description=f"Internal calls carrying `{INTERNAL_HEADER}: 1` skip the snapshot and get a live build.",
)
async def value_bets(
    request: Request,
    q: DateQuery = Depends(),
    service: ValueBetService = Depends(get_value_bet_service),
    snapshots: SnapshotRepository = Depends(get_snapshots),
    settings: Settings = Depends(get_settings),
):
    day = q.date or ymd_in_tz(settings.tz_display)
    live_only = request.headers.get(INTERNAL_HEADER) == "1"
    return await _value_bets(day, service, snapshots, live_only=live_only)
