from typing import Any, Callable, Dict, List

import httpx
import pytest

from valuebets import deps
from valuebets.clients.apifootball import ApiFootballClient
from valuebets.core.config import Settings, get_settings
from valuebets.main import create_app
from valuebets.services.storage import MemoryStore

Handler = Callable[[httpx.Request], httpx.Response]


def fixture_row(fid: int, *, home: str = "Home FC", away: str = "Away FC", kickoff: str = "2025-08-04T19:00:00+00:00") -> Dict[str, Any]:
    return {
        "fixture": {"id": fid, "date": kickoff, "status": {"short": "NS"}},
        "league": {"id": 39, "name": "Premier League"},
        "teams": {"home": {"id": fid * 10, "name": home}, "away": {"id": fid * 10 + 1, "name": away}},
    }


def three_way_book(name: str, home: str, draw: str = "3.40", away: str = "3.60") -> Dict[str, Any]:
    return {
        "name": name,
        "bets": [{
            "name": "Match Winner",
            "values": [
                {"value": "Home", "odd": home},
                {"value": "Draw", "odd": draw},
                {"value": "Away", "odd": away},
            ],
        }],
    }


def odds_payload(*books: Dict[str, Any]) -> Dict[str, Any]:
    return {"response": [{"bookmakers": list(books)}]}


def football_handler(
    fixtures: List[Dict[str, Any]],
    odds: Dict[int, Dict[str, Any]],
    *,
    fixtures_status: int = 200,
) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/fixtures":
            if fixtures_status != 200:
                return httpx.Response(fixtures_status, text="upstream down")
            return httpx.Response(200, json={"response": fixtures})
        if request.url.path == "/odds":
            fid = int(request.url.params["fixture"])
            if fid not in odds:
                return httpx.Response(404, text="no odds")
            return httpx.Response(200, json=odds[fid])
        return httpx.Response(404)
    return handler


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_football_key="test-key",
        sportmonks_key="sm-key",
        trusted_bookies="Bet365|Pinnacle,Unibet",
        tz_display="Europe/Belgrade",
        vb_limit=25,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def app(settings, store):
    deps._select_cache.clear()
    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[deps.get_store] = lambda: store
    return app


@pytest.fixture
def use_football(app, settings):
    """Route the API-Football dependency to an httpx.MockTransport handler."""
    def install(handler: Handler) -> None:
        async def _client():
            c = ApiFootballClient(settings.api_football_key, transport=httpx.MockTransport(handler))
            try:
                yield c
            finally:
                await c.aclose()
        app.dependency_overrides[deps.get_api_football] = _client
    return install


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
