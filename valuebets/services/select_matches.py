# valuebets/services/select_matches.py
from __future__ import annotations

from typing import Any, Dict, Optional

from ..clients.sportmonks import SportMonksClient
from ..core.cache import TTLCache
from ..core.errors import SourceUnavailable
from ..domain.models import ModelProbabilities
from .model import BTTS_PROBABILITY, OVER25_PROBABILITY, PLACEHOLDER, top_two_gap
from .utils import format_local


def _nested(obj: Dict[str, Any], name: str) -> Dict[str, Any]:
    """SportMonks includes come back as {"<name>": {"data": {...}}}."""
    return ((obj.get(name) or {}).get("data")) or {}


def _kickoff(fx: Dict[str, Any]) -> Optional[str]:
    start = fx.get("starting_at")
    if isinstance(start, dict):
        return start.get("date_time")
    return start or fx.get("date")


def match_card(fx: Dict[str, Any], probs: ModelProbabilities = PLACEHOLDER, *, tz: str) -> Dict[str, Any]:
    home = _nested(fx, "localTeam")
    away = _nested(fx, "visitorTeam")
    league = _nested(fx, "league")
    confidence = top_two_gap(probs)
    return {
        "fixture_id": fx.get("id"),
        "league": {"id": league.get("id"), "name": league.get("name")},
        "teams": {
            "home": {"id": home.get("id") or fx.get("localteam_id"), "name": home.get("name")},
            "away": {"id": away.get("id") or fx.get("visitorteam_id"), "name": away.get("name")},
        },
        "venue": {"name": fx.get("venue")},
        "datetime_local": format_local(_kickoff(fx), tz) or "Invalid Date",
        "model_probs": {"home": round(probs.home, 2), "draw": round(probs.draw, 2), "away": round(probs.away, 2)},
        "predicted": probs.best(),
        "confidence": confidence,
        "btts_probability": BTTS_PROBABILITY,
        "over25_probability": OVER25_PROBABILITY,
        "rankScore": confidence,
    }


class MatchSelector:
    """SportMonks fixtures for a date as model match cards, cached per date."""

    def __init__(self, client: SportMonksClient, *, tz: str, cache: TTLCache, ttl: Optional[float] = None):
        self.client = client
        self.tz = tz
        self.cache = cache
        self.ttl = ttl

    async def select(self, date: str) -> Dict[str, Any]:
        hit = self.cache.get(("select-matches", date))
        if hit is not None:
            return hit
        raw = await self.client.fixtures_by_date(date)
        fixtures = (raw.get("data") or []) if isinstance(raw, dict) else None
        if not isinstance(fixtures, list):
            raise SourceUnavailable(self.client.source, "unexpected fixtures payload", status=502, body=str(raw))
        fixtures = [fx for fx in fixtures if isinstance(fx, dict)]
        out = {
            "picks": [match_card(fx, tz=self.tz) for fx in fixtures],
            "debug": {
                "date": date,
                "sourceUsed": "sportmonks",
                "total_fetched": len(fixtures),
                "raw_source": raw,
            },
        }
        self.cache.set(("select-matches", date), out, ttl=self.ttl)
        return out
