# valuebets/clients/apifootball.py
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..core.config import API_FOOTBALL_BASE
from ..core.errors import MissingCredentials
from ..core.http import DEFAULT_TIMEOUT, UpstreamClient


class ApiFootballClient(UpstreamClient):
    """
    Thin wrapper over API-Football v3 (https://v3.football.api-sports.io).

      - fixtures:  GET /fixtures?date=YYYY-MM-DD&status=NS&timezone=UTC
      - odds:      GET /odds?fixture={id}

    Every call is a single attempt; non-2xx and transport errors raise SourceUnavailable.
    """

    source = "api-football"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = API_FOOTBALL_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._has_key = bool(api_key)
        super().__init__(
            base_url,
            headers={"x-apisports-key": api_key} if api_key else {},
            timeout=timeout,
            transport=transport,
        )

    def _require_key(self) -> None:
        if not self._has_key:
            raise MissingCredentials(self.source, "API_FOOTBALL_KEY")

    # ------------ fixtures (by date) ------------
    async def fixtures_by_date(self, date: str, *, status: Optional[str] = "NS") -> Dict[str, Any]:
        """Not-started fixtures for a calendar date (all competitions)."""
        self._require_key()
        params: Dict[str, Any] = {"date": date, "timezone": "UTC"}
        if status:
            params["status"] = status
        return await self._get_json("/fixtures", params)

    # ------------ odds for a fixture ------------
    async def odds_for_fixture(self, fixture_id: int) -> Dict[str, Any]:
        self._require_key()
        return await self._get_json("/odds", {"fixture": fixture_id})
