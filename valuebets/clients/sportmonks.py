# valuebets/clients/sportmonks.py
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..core.config import SPORTMONKS_BASE
from ..core.errors import MissingCredentials
from ..core.http import DEFAULT_TIMEOUT, UpstreamClient


class SportMonksClient(UpstreamClient):
    """SportMonks v2: GET /fixtures/date/{date}?api_token=&include=localTeam,visitorTeam,league"""

    source = "sportmonks"

    def __init__(
        self,
        api_token: str,
        *,
        base_url: str = SPORTMONKS_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = api_token
        super().__init__(base_url, timeout=timeout, transport=transport)

    async def fixtures_by_date(self, date: str) -> Dict[str, Any]:
        if not self._token:
            raise MissingCredentials(self.source, "SPORTMONKS_KEY")
        return await self._get_json(
            f"/fixtures/date/{date}",
            {"api_token": self._token, "include": "localTeam,visitorTeam,league"},
        )
