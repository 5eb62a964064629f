from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class ValueBetsResponse(BaseModel):
    value_bets: List[Dict[str, Any]]   # Pick fields; snapshots pass through as stored
    day: str
    source: str                        # "live" | "snapshot"
    built_at: Optional[str] = None
