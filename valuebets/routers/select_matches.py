# valuebets/routers/select_matches.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.errors import MissingCredentials, SourceUnavailable
from ..deps import get_match_selector
from ..schemas.common import ErrorBody, SourceError
from ..schemas.query import DateQuery
from ..services.select_matches import MatchSelector

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["select-matches"])


@router.get(
    "/select-matches",
    responses={400: {"model": ErrorBody}, 500: {"model": SourceError}},
    summary="Model match cards for a date (SportMonks)",
)
async def select_matches(
    q: DateQuery = Depends(),
    selector: MatchSelector = Depends(get_match_selector),
):
    if not q.date:
        return JSONResponse(status_code=400, content={"error": "Missing date"})
    try:
        return await selector.select(q.date)
    except MissingCredentials as e:
        return JSONResponse(status_code=500, content={"error": e.message})
    except SourceUnavailable as e:
        log.warning("select-matches %s: %s", q.date, e)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed fetching from sportmonks", "status": e.status, "body": e.body},
        )
