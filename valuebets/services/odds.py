# valuebets/services/odds.py
from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..clients.apifootball import ApiFootballClient
from ..core.errors import SourceUnavailable
from ..core.metrics import MetricsCollector, NullMetrics
from ..domain.models import OddsQuote, ThreeWayPrices

log = logging.getLogger(__name__)

# market names API-Football uses for the full-time three-way market
_THREE_WAY = re.compile(r"match winner|1x2|full time result", re.I)


# -------------------------------
# Public API
# -------------------------------
def normalize_three_way(
    payload: Dict[str, Any],
    fixture_id: int,
    trusted: Sequence[str] = (),
) -> Optional[OddsQuote]:
    """
    Reduce an API-Football /odds payload to one three-way quote.

    When a trusted allowlist is given, only those bookmakers (case-insensitive)
    are considered. The first bookmaker carrying a three-way bet wins.
    """
    for book in iter_bookmakers(payload, trusted):
        bet = _find_three_way(book)
        if bet is None:
            continue
        prices = _map_three_way(bet)
        if prices is None:
            continue
        return OddsQuote(fixture_id=fixture_id, bookmaker=str(book.get("name") or ""), prices=prices)
    return None


def iter_bookmakers(payload: Any, trusted: Sequence[str] = ()) -> Iterable[Dict[str, Any]]:
    """Bookmaker objects of an /odds payload; anything not shaped like one is skipped."""
    allow = {t.lower() for t in trusted}
    for row in _list(payload, "response"):
        for book in _list(row, "bookmakers"):
            name = str(book.get("name") or "").strip().lower()
            if allow and name not in allow:
                continue
            yield book


async def fetch_odds_map(
    client: ApiFootballClient,
    fixture_ids: Iterable[int],
    *,
    trusted: Sequence[str] = (),
    metrics: MetricsCollector = NullMetrics(),
) -> Dict[int, OddsQuote]:
    """
    One /odds call per fixture, all in flight together. A failed call only
    costs that fixture its quote.
    """
    ids = list(dict.fromkeys(fixture_ids))

    async def one(fid: int) -> Optional[OddsQuote]:
        try:
            payload = await client.odds_for_fixture(fid)
        except SourceUnavailable as e:
            metrics.incr("odds.unavailable")
            log.warning("odds unavailable for fixture %s: %s", fid, e)
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("response") or [], list):
            metrics.incr("odds.unavailable")
            log.warning("unexpected odds payload for fixture %s: %.200s", fid, payload)
            return None
        return normalize_three_way(payload, fid, trusted)

    quotes = await asyncio.gather(*(one(fid) for fid in ids))
    return {q.fixture_id: q for q in quotes if q is not None}


# -------------------------------
# Internals (helpers)
# -------------------------------
def to_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        f = float(str(x).strip())
    except ValueError:
        return None
    return f if math.isfinite(f) else None


def _list(obj: Any, key: str) -> List[Dict[str, Any]]:
    """obj[key] when obj is a dict and that is a list, keeping only dict items."""
    items = obj.get(key) if isinstance(obj, dict) else None
    if not isinstance(items, list):
        return []
    return [x for x in items if isinstance(x, dict)]


def _find_three_way(book: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for bet in _list(book, "bets"):
        if _THREE_WAY.search(str(bet.get("name") or "")):
            return bet
    return None


def _map_three_way(bet: Dict[str, Any]) -> Optional[ThreeWayPrices]:
    """Values come as {"value": "Home"|"Draw"|"Away" (or 1/X/2), "odd": "2.10"}."""
    values = _list(bet, "values")
    row: Dict[str, Optional[float]] = {"home": None, "draw": None, "away": None}
    for v in values:
        label = str(v.get("value") or "").strip().lower()
        price = to_float(v.get("odd"))
        if label in ("home", "1"):
            row["home"] = price
        elif label in ("draw", "x"):
            row["draw"] = price
        elif label in ("away", "2"):
            row["away"] = price
    if all(p is None for p in row.values()):
        return None
    return ThreeWayPrices(**row)


def price_for_selection(book: Dict[str, Any], market: str, selection: str) -> Optional[float]:
    """
    Price of our (market, selection) at one bookmaker, for the closing-line capture.
    Supports 1X2 (1/X/2), BTTS (YES/NO) and OU 2.5 (OVER/UNDER).
    """
    bets = _list(book, "bets")
    m = (market or "").upper()
    s = (selection or "").upper()

    def first(pattern: str) -> Optional[Dict[str, Any]]:
        rx = re.compile(pattern, re.I)
        return next((b for b in bets if rx.search(str(b.get("name") or ""))), None)

    def value(bet: Optional[Dict[str, Any]], pattern: str) -> Optional[float]:
        if bet is None:
            return None
        rx = re.compile(pattern, re.I)
        v = next((v for v in _list(bet, "values") if rx.search(str(v.get("value") or ""))), None)
        return to_float(v.get("odd")) if v else None

    if m == "1X2":
        label = {"1": r"^(home|1)$", "X": r"^(draw|x)$", "2": r"^(away|2)$"}.get(s)
        return value(first(_THREE_WAY.pattern), label) if label else None
    if m == "BTTS":
        return value(first(r"both teams to score"), r"^yes$" if "YES" in s else r"^no$")
    if m == "OU":
        return value(first(r"over/under"), r"^over 2\.5$" if "OVER" in s else r"^under 2\.5$")
    return None
