# valuebets/services/fixtures.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..clients.apifootball import ApiFootballClient
from ..core.errors import SourceUnavailable
from ..domain.models import Fixture, League, Team

log = logging.getLogger(__name__)


def _int_or_none(x: Any) -> Optional[int]:
    try:
        return int(x) if x is not None else None
    except (TypeError, ValueError):
        return None


def _obj(x: Any) -> Dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _extract_fixture(g: Dict[str, Any]) -> Optional[Fixture]:
    """Normalize one API-Football v3 fixture row; None when the row has no usable id."""
    fx = _obj(g.get("fixture"))
    fid = _int_or_none(fx.get("id"))
    if fid is None:
        return None
    league = _obj(g.get("league"))
    teams = _obj(g.get("teams"))
    home = _obj(teams.get("home"))
    away = _obj(teams.get("away"))
    return Fixture(
        id=fid,
        league=League(id=_int_or_none(league.get("id")), name=league.get("name")),
        home=Team(id=_int_or_none(home.get("id")), name=home.get("name")),
        away=Team(id=_int_or_none(away.get("id")), name=away.get("name")),
        kickoff=fx.get("date"),
        status=_obj(fx.get("status")).get("short"),
    )


def normalize_fixtures(payload: Any) -> List[Fixture]:
    """Raises SourceUnavailable when the body is not a {"response": [...]} object."""
    rows = (payload.get("response") or []) if isinstance(payload, dict) else None
    if not isinstance(rows, list):
        raise SourceUnavailable("api-football", "unexpected fixtures payload", status=502, body=str(payload))
    out: List[Fixture] = []
    for g in rows:
        if not isinstance(g, dict):
            log.debug("skip non-object fixture row: %r", g)
            continue
        f = _extract_fixture(g)
        if f is None:
            log.debug("skip fixture row without id: keys=%s", list(g.keys()))
            continue
        out.append(f)
    return out


async def fetch_fixtures(client: ApiFootballClient, date: str) -> List[Fixture]:
    """Raises SourceUnavailable; callers decide whether to degrade or surface it."""
    payload = await client.fixtures_by_date(date)
    return normalize_fixtures(payload)
