# valuebets/middleware/offline.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, MutableMapping, Optional, Tuple

from ..services.offline import CachedResponse, CacheStorage, OfflineCachePolicy, RequestInfo

log = logging.getLogger(__name__)

Scope = MutableMapping[str, Any]
Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


def _header(scope: Scope, name: bytes) -> str:
    for k, v in scope.get("headers") or []:
        if k.lower() == name:
            return v.decode("latin-1")
    return ""


def request_info(scope: Scope) -> RequestInfo:
    accept = _header(scope, b"accept")
    navigate = _header(scope, b"sec-fetch-mode") == "navigate" or "text/html" in accept
    return RequestInfo(
        path=scope.get("path", "/"),
        method=scope.get("method", "GET"),
        navigate=navigate,
        query=(scope.get("query_string") or b"").decode("latin-1"),
    )


async def _empty_receive() -> Message:
    return {"type": "http.request", "body": b"", "more_body": False}


async def capture(app: ASGIApp, scope: Scope, receive: Receive) -> CachedResponse:
    """Run the downstream app and buffer its whole response."""
    status = 500
    headers: List[Tuple[str, str]] = []
    chunks: List[bytes] = []

    async def send(message: Message) -> None:
        nonlocal status
        if message["type"] == "http.response.start":
            status = message["status"]
            headers.extend((k.decode("latin-1"), v.decode("latin-1")) for k, v in message.get("headers") or [])
        elif message["type"] == "http.response.body":
            chunks.append(message.get("body", b""))

    await app(scope, receive, send)
    return CachedResponse(status=status, headers=tuple(headers), body=b"".join(chunks))


async def replay(resp: CachedResponse, send: Send) -> None:
    await send({
        "type": "http.response.start",
        "status": resp.status,
        "headers": [(k.encode("latin-1"), v.encode("latin-1")) for k, v in resp.headers],
    })
    await send({"type": "http.response.body", "body": resp.body, "more_body": False})


class OfflineCacheMiddleware:
    """
    Applies OfflineCachePolicy to GET requests. The downstream app plays the
    role of the network. The policy installs lazily on the first request;
    a failed install leaves requests uncached and is retried on the next one.
    """

    def __init__(self, app: ASGIApp, policy: OfflineCachePolicy):
        self.app = app
        self.policy = policy
        self._install_lock = asyncio.Lock()

    async def _ensure_installed(self, scope: Scope) -> bool:
        if self.policy.active:
            return True
        async with self._install_lock:
            if self.policy.active:
                return True

            async def fetch_path(path: str) -> CachedResponse:
                sub: Dict[str, Any] = dict(scope, path=path, raw_path=path.encode(), query_string=b"", method="GET")
                return await capture(self.app, sub, _empty_receive)

            try:
                await self.policy.install(fetch_path)
            except Exception as e:
                log.warning("offline cache install failed: %s", e)
                return False
        return True

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") != "GET":
            await self.app(scope, receive, send)
            return
        if not await self._ensure_installed(scope):
            await self.app(scope, receive, send)
            return

        info = request_info(scope)
        resp = await self.policy.handle(info, lambda: capture(self.app, scope, receive))
        await replay(resp, send)


def install_offline_cache(app: Any, policy: Optional[OfflineCachePolicy] = None, **kwargs: Any) -> None:
    """app.add_middleware wrapper; kwargs go to OfflineCachePolicy when no policy is given."""
    app.add_middleware(OfflineCacheMiddleware, policy=policy or OfflineCachePolicy(storage=CacheStorage(), **kwargs))
