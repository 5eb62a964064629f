from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class DateQuery(BaseModel):
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD")


class OhlcQuery(BaseModel):
    # symbol stays optional here so a missing one is answered with our own 400
    symbol: Optional[str] = Field(default=None, description="e.g. LINK, BTCUSDT")
    interval: str = Field(default="30m", description="Binance kline interval")
    limit: int = Field(default=48, description="number of candles")
