# valuebets/routers/ohlc.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from ..clients.binance import BinanceKlinesClient, normalize_pair
from ..core.errors import SourceUnavailable
from ..deps import get_binance
from ..schemas.common import ErrorBody, UpstreamError
from ..schemas.ohlc import OhlcResponse
from ..schemas.query import OhlcQuery

router = APIRouter(prefix="/api", tags=["ohlc"])

CACHE_CONTROL = "s-maxage=120, stale-while-revalidate=600"


@router.get(
    "/ohlc",
    response_model=OhlcResponse,
    responses={400: {"model": ErrorBody}, 502: {"model": UpstreamError}},
    summary="Candles for a crypto symbol",
    description="Binance klines (default 30m x 48). `LINK` is read as `LINKUSDT`.",
)
async def ohlc(
    response: Response,
    q: OhlcQuery = Depends(),
    client: BinanceKlinesClient = Depends(get_binance),
):
    pair = normalize_pair(q.symbol or "")
    if not pair:
        return JSONResponse(status_code=400, content={"error": "Missing symbol"})

    try:
        bars = await client.klines(pair, interval=q.interval, limit=q.limit)
    except SourceUnavailable as e:
        status = e.status if e.status and e.status >= 400 else 502
        return JSONResponse(
            status_code=status,
            content={"error": "Upstream failed", "detail": {"host": e.host, "status": status, "body": e.body}},
        )

    response.headers["Cache-Control"] = CACHE_CONTROL
    return {"symbol": pair, "bars": bars}
