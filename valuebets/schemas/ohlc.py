from __future__ import annotations
from typing import List
from pydantic import BaseModel


class Bar(BaseModel):
    time: int          # unix seconds
    open: float
    high: float
    low: float
    close: float


class OhlcResponse(BaseModel):
    symbol: str
    bars: List[Bar]
