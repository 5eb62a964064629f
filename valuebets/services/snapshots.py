# valuebets/services/snapshots.py
from __future__ import annotations

import json
import logging
import statistics
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..clients.apifootball import ApiFootballClient
from ..core.errors import SourceUnavailable
from .edge import implied_probability
from .odds import iter_bookmakers, price_for_selection
from .storage import KeyValueStore
from .utils import parse_kickoff

log = logging.getLogger(__name__)


def _decode(raw: Optional[str]) -> Any:
    """Stored values are JSON text; a value may itself be JSON text wrapped once more."""
    if raw is None:
        return None
    try:
        val = json.loads(raw)
    except ValueError:
        return None
    if isinstance(val, str):
        try:
            return json.loads(val)
        except ValueError:
            return val
    return val


def to_pick_list(value: Any) -> List[Dict[str, Any]]:
    """Accepts a bare list or {value_bets|value|data: [...]} wrappers."""
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for k in ("value_bets", "value", "data"):
            inner = value.get(k)
            if isinstance(inner, list):
                return inner
    return []


class SnapshotRepository:
    """
    Daily value-bet snapshots and closing-line records.

        vb:day:<date>:rev         latest revision number
        vb:day:<date>:rev:<n>     snapshot of revision n
        vb:day:<date>:last        latest snapshot
        vb:close:<fixture_id>     closing-odds record
    """

    def __init__(self, store: KeyValueStore, ttl: Optional[float] = 48 * 3600):
        self.store = store
        self.ttl = ttl

    def last(self, day: str) -> Optional[Dict[str, Any]]:
        snap = _decode(self.store.get(f"vb:day:{day}:last"))
        if isinstance(snap, list):
            return {"value_bets": snap, "day": day, "built_at": None}
        return snap if isinstance(snap, dict) else None

    def revision(self, day: str) -> int:
        try:
            return int(_decode(self.store.get(f"vb:day:{day}:rev")) or 0)
        except (TypeError, ValueError):
            return 0

    def save(self, day: str, value_bets: Sequence[Dict[str, Any]], *, now: Optional[datetime] = None) -> Dict[str, Any]:
        rev = self.revision(day) + 1
        snapshot = {
            "value_bets": list(value_bets),
            "built_at": (now or datetime.now(timezone.utc)).isoformat(),
            "day": day,
        }
        body = json.dumps(snapshot)
        self.store.set(f"vb:day:{day}:rev:{rev}", body, self.ttl)
        self.store.set(f"vb:day:{day}:last", body, self.ttl)
        self.store.set(f"vb:day:{day}:rev", json.dumps(rev), self.ttl)
        return {"rev": rev, **snapshot}

    def closing(self, fixture_id: int) -> Optional[Dict[str, Any]]:
        rec = _decode(self.store.get(f"vb:close:{fixture_id}"))
        return rec if isinstance(rec, dict) else None

    def save_closing(self, fixture_id: int, record: Dict[str, Any]) -> None:
        self.store.set(f"vb:close:{fixture_id}", json.dumps(record))


def _pp(x: Optional[float]) -> Optional[float]:
    return round(x * 1000) / 10 if x is not None else None


async def capture_closing_odds(
    repo: SnapshotRepository,
    client: ApiFootballClient,
    day: str,
    *,
    trusted: Sequence[str],
    window: tuple[int, int] = (-10, 20),
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    For picks of `day` kicking off within `window` minutes of now, record the
    median price across trusted bookmakers once per fixture.
    """
    snap = repo.last(day)
    picks = to_pick_list(snap)
    if not picks:
        return {"ok": True, "updated": 0, "note": "no union"}

    now = now or datetime.now(timezone.utc)
    lo, hi = window
    updated = scanned = 0

    for p in picks:
        fid = p.get("fixture_id")
        ko = parse_kickoff(p.get("kickoff"))
        if not fid or ko is None:
            continue
        minutes_to_ko = round((ko - now).total_seconds() / 60)
        if minutes_to_ko < lo or minutes_to_ko > hi:
            continue
        scanned += 1

        existing = repo.closing(fid)
        if existing and isinstance(existing.get("trusted_median_close"), (int, float)):
            continue

        try:
            payload = await client.odds_for_fixture(int(fid))
        except SourceUnavailable as e:
            log.warning("closing odds unavailable for %s: %s", fid, e)
            continue

        prices: List[float] = []
        # no allowlist means no trusted books; nothing gets recorded
        if trusted:
            for book in iter_bookmakers(payload, trusted):
                odd = price_for_selection(book, p.get("market") or "", p.get("selection") or "")
                if odd is not None:
                    prices.append(odd)
        if not prices:
            continue

        implied = [i for i in (implied_probability(o) for o in prices) if i is not None]
        spread = (max(implied) - min(implied)) if implied else None
        repo.save_closing(int(fid), {
            "trusted_median_close": statistics.median(prices),
            "spread_close_pp": _pp(spread),
            "books_used": len(prices),
            "at": now.isoformat(),
        })
        updated += 1

    return {"ok": True, "updated": updated, "scanned": scanned}


async def rebuild_snapshot(
    repo: SnapshotRepository,
    fetch_live: Callable[[], Awaitable[List[Dict[str, Any]]]],
    day: str,
    *,
    limit: int,
) -> Dict[str, Any]:
    """Freeze the current live list (top `limit`) as the day's next revision."""
    bets = await fetch_live()
    snap = repo.save(day, bets[:limit])
    log.info("snapshot %s rev %s: %d picks", day, snap["rev"], len(snap["value_bets"]))
    return {"ok": True, "snapshot_for": day, "count": len(snap["value_bets"]), "rev": snap["rev"]}
