from __future__ import annotations
from typing import Any, Mapping, Optional
import logging
import httpx

from .errors import SourceUnavailable

DEFAULT_TIMEOUT = 20.0

log = logging.getLogger(__name__)


class UpstreamClient:
    """Async httpx wrapper shared by the provider clients. Single attempt per call, no retries."""

    source = "upstream"

    def __init__(
        self,
        base_url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base = base_url.rstrip("/")
        self._http = httpx.AsyncClient(timeout=timeout, headers=headers or {}, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc) -> None:
        await self.aclose()

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> httpx.Response:
        url = f"{self._base}{path}"
        try:
            resp = await self._http.get(url, params=params or {})
        except httpx.HTTPError as e:
            log.warning("%s GET %s failed: %s", self.source, path, e)
            raise SourceUnavailable(self.source, f"GET {path} failed: {e}") from e
        if resp.is_success:
            return resp
        body = resp.text
        log.warning("%s GET %s -> %s", self.source, path, resp.status_code)
        raise SourceUnavailable(self.source, f"GET {path} -> {resp.status_code}", status=resp.status_code, body=body)

    async def _get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        resp = await self._get(path, params)
        try:
            return resp.json()
        except ValueError as e:
            raise SourceUnavailable(self.source, f"GET {path} returned non-JSON", status=resp.status_code, body=resp.text) from e
