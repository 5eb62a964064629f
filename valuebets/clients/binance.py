# valuebets/clients/binance.py
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..core.config import BINANCE_HOSTS
from ..core.errors import SourceUnavailable
from ..core.http import DEFAULT_TIMEOUT

log = logging.getLogger(__name__)

_QUOTE_SUFFIX = re.compile(r"(USDT|USDC|USD)$")
DEFAULT_QUOTE = "USDT"


def normalize_pair(symbol: str) -> str:
    """'link' -> 'LINKUSDT'; symbols already quoted (USDT/USDC/USD) pass through upper-cased."""
    s = (symbol or "").strip().upper()
    if not s:
        return s
    return s if _QUOTE_SUFFIX.search(s) else f"{s}{DEFAULT_QUOTE}"


def kline_to_bar(k: Sequence[Any]) -> Dict[str, Any]:
    # [open_time_ms, open, high, low, close, volume, ...]
    return {
        "time": int(k[0]) // 1000,
        "open": float(k[1]),
        "high": float(k[2]),
        "low": float(k[3]),
        "close": float(k[4]),
    }


class BinanceKlinesClient:
    """
    Public k-line reader. Hosts are tried in order; a host that errors,
    answers non-2xx, or returns no klines is skipped. When every host fails,
    SourceUnavailable carries the last host's status and body snippet.
    """

    source = "binance"

    def __init__(
        self,
        hosts: Sequence[str] = BINANCE_HOSTS,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._hosts = [h.rstrip("/") for h in hosts]
        self._http = httpx.AsyncClient(
            timeout=timeout,
            headers={"accept": "application/json", "user-agent": "valuebets/0.1"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def klines(self, pair: str, interval: str = "30m", limit: int = 48) -> List[Dict[str, Any]]:
        params = {"symbol": pair, "interval": interval, "limit": str(limit)}
        last: Optional[SourceUnavailable] = None
        for host in self._hosts:
            try:
                r = await self._http.get(f"{host}/api/v3/klines", params=params)
            except httpx.HTTPError as e:
                log.warning("binance host %s failed: %s", host, e)
                last = SourceUnavailable(self.source, f"{host}: {e}", body=str(e), host=host)
                continue

            if not r.is_success:
                last = SourceUnavailable(self.source, f"{host} -> {r.status_code}", status=r.status_code, body=r.text, host=host)
                continue

            try:
                rows = r.json()
            except ValueError:
                rows = None
            if not isinstance(rows, list) or not rows:
                last = SourceUnavailable(self.source, f"{host}: empty klines", status=502, body="Empty klines", host=host)
                continue

            try:
                bars = [kline_to_bar(k) for k in rows]
            except (TypeError, ValueError, IndexError) as e:
                log.warning("binance host %s returned a bad kline: %s", host, e)
                last = SourceUnavailable(self.source, f"{host}: bad kline", status=500, body=str(e), host=host)
                continue
            return bars

        if last is None:
            raise SourceUnavailable(self.source, "no hosts configured", status=502)
        raise last
