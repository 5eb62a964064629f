from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def ymd_in_tz(tz: str, now: Optional[datetime] = None) -> str:
    """Calendar date (YYYY-MM-DD) as seen in the display timezone."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d")


def parse_kickoff(value: Optional[str]) -> Optional[datetime]:
    """ISO or 'YYYY-MM-DD HH:MM:SS' (assumed UTC when naive)."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).strip().replace(" ", "T").replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def format_local(value: Optional[str], tz: str) -> Optional[str]:
    """'2025-08-04T19:00:00+00:00' -> '04/08, 21:00' in Europe/Belgrade."""
    dt = parse_kickoff(value)
    if dt is None:
        return None
    return dt.astimezone(ZoneInfo(tz)).strftime("%d/%m, %H:%M")
