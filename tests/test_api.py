import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi import Request

from conftest import fixture_row, football_handler, odds_payload, three_way_book
from valuebets import deps
from valuebets.clients.binance import BinanceKlinesClient
from valuebets.clients.sportmonks import SportMonksClient
from valuebets.core.config import INTERNAL_HEADER
from valuebets.core.errors import SourceUnavailable
from valuebets.services.feed import LockedEndpointFetcher
from valuebets.services.utils import ymd_in_tz

DAY = "2025-08-04"


def _happy_football():
    return football_handler(
        [fixture_row(1), fixture_row(2)],
        {1: odds_payload(three_way_book("Bet365", home="2.00")), 2: odds_payload(three_way_book("Pinnacle", home="2.50"))},
    )


# ---------------- value bets ----------------
@pytest.mark.asyncio
async def test_value_bets_locked_live(client, use_football):
    use_football(_happy_football())
    r = await client.get("/api/value-bets-locked", params={"date": DAY})
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "live"
    assert body["day"] == DAY
    bets = body["value_bets"]
    assert [b["fixture_id"] for b in bets] == [2, 1]
    assert bets[0]["edge"] == pytest.approx(0.05)
    assert bets[1]["implied_prob"] == 0.5
    assert bets[1]["fallback"] is False
    assert bets[0]["datetime_local"] == "04/08, 21:00"


@pytest.mark.asyncio
async def test_value_bets_upstream_failure_is_500(client, use_football):
    use_football(football_handler([], {}, fixtures_status=500))
    r = await client.get("/api/value-bets", params={"date": DAY})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to fetch value bets"}


@pytest.mark.asyncio
async def test_value_bets_no_odds_gives_fallback(client, use_football):
    use_football(football_handler([fixture_row(1)], {}))
    r = await client.get("/api/value-bets-locked", params={"date": DAY})
    [bet] = r.json()["value_bets"]
    assert bet["fallback"] is True
    assert bet["reason"] == "model-only fallback"
    assert bet["selection"] == "1"


@pytest.mark.asyncio
async def test_value_bets_malformed_odds_body_gives_fallback(client, use_football):
    use_football(football_handler(
        [fixture_row(1), fixture_row(2)],
        {
            1: {"errors": {"token": "bad"}, "response": {"bookmakers": []}},
            2: {"response": ["x", {"bookmakers": "none"}, {"bookmakers": [3, {"name": "Bet365", "bets": "?"}]}]},
        },
    ))
    r = await client.get("/api/value-bets-locked", params={"date": DAY})
    assert r.status_code == 200
    bets = r.json()["value_bets"]
    assert len(bets) == 2
    assert all(b["fallback"] is True for b in bets)


@pytest.mark.asyncio
async def test_value_bets_malformed_fixtures_body_is_500(client, use_football):
    def handler(request):
        return httpx.Response(200, json={"response": {"a": 1}})

    use_football(handler)
    r = await client.get("/api/value-bets-locked", params={"date": DAY})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to fetch value bets"}


@pytest.mark.asyncio
async def test_snapshot_served_unless_internal_header(client, use_football, store):
    use_football(_happy_football())
    frozen = {"value_bets": [{"fixture_id": 99, "type": "MODEL-ONLY"}], "built_at": "2025-08-04T06:00:00+00:00", "day": DAY}
    store.set(f"vb:day:{DAY}:last", json.dumps(frozen))

    r = await client.get("/api/value-bets-locked", params={"date": DAY})
    assert r.json()["source"] == "snapshot"
    assert r.json()["value_bets"] == frozen["value_bets"]
    assert r.json()["built_at"] == frozen["built_at"]

    r = await client.get("/api/value-bets", params={"date": DAY})
    assert r.json()["source"] == "snapshot"

    r = await client.get("/api/value-bets", params={"date": DAY}, headers={INTERNAL_HEADER: "1"})
    assert r.json()["source"] == "live"
    assert len(r.json()["value_bets"]) == 2



# ---------------- ohlc ----------------
def _use_binance(app, handler):
    async def _client():
        c = BinanceKlinesClient(transport=httpx.MockTransport(handler))
        try:
            yield c
        finally:
            await c.aclose()
    app.dependency_overrides[deps.get_binance] = _client


KLINES = [
    [1722790800000, "15.1", "15.4", "15.0", "15.3", "1000", 1722792599999],
    [1722792600000, "15.3", "15.5", "15.2", "15.2", "900", 1722794399999],
]


@pytest.mark.asyncio
async def test_ohlc_missing_symbol(client):
    r = await client.get("/api/ohlc")
    assert r.status_code == 400
    assert r.json() == {"error": "Missing symbol"}


@pytest.mark.asyncio
async def test_ohlc_bars(app, client):
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, json=KLINES)

    _use_binance(app, handler)
    r = await client.get("/api/ohlc", params={"symbol": "link"})
    assert r.status_code == 200
    assert r.headers["cache-control"] == "s-maxage=120, stale-while-revalidate=600"
    body = r.json()
    assert body["symbol"] == "LINKUSDT"
    assert body["bars"][0] == {"time": 1722790800, "open": 15.1, "high": 15.4, "low": 15.0, "close": 15.3}
    assert seen[0].host == "api.binance.com"
    assert seen[0].params["interval"] == "30m"
    assert seen[0].params["limit"] == "48"


@pytest.mark.asyncio
async def test_ohlc_falls_through_hosts(app, client):
    def handler(request):
        if request.url.host == "api.binance.com":
            return httpx.Response(451, text="restricted location")
        if request.url.host == "data-api.binance.vision":
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=KLINES)

    _use_binance(app, handler)
    r = await client.get("/api/ohlc", params={"symbol": "BTCUSDC", "interval": "1h", "limit": 2})
    assert r.status_code == 200
    assert r.json()["symbol"] == "BTCUSDC"
    assert len(r.json()["bars"]) == 2


@pytest.mark.asyncio
async def test_ohlc_all_hosts_fail(app, client):
    def handler(request):
        if request.url.host == "www.binance.com":
            return httpx.Response(418, text="x" * 500)
        raise httpx.ConnectError("refused")

    _use_binance(app, handler)
    r = await client.get("/api/ohlc", params={"symbol": "eth"})
    assert r.status_code == 418
    body = r.json()
    assert body["error"] == "Upstream failed"
    assert body["detail"]["host"] == "https://www.binance.com"
    assert body["detail"]["status"] == 418
    assert len(body["detail"]["body"]) == 200


@pytest.mark.asyncio
async def test_ohlc_empty_klines_everywhere_is_502(app, client):
    _use_binance(app, lambda request: httpx.Response(200, json=[]))
    r = await client.get("/api/ohlc", params={"symbol": "eth"})
    assert r.status_code == 502
    assert r.json()["detail"]["body"] == "Empty klines"


BAD_KLINES = [[1700000000000, "1.0", "2.0", "0.5", "1.5"], ["bad"]]


@pytest.mark.asyncio
async def test_ohlc_malformed_klines_everywhere_is_error_body(app, client):
    _use_binance(app, lambda request: httpx.Response(200, json=BAD_KLINES))
    r = await client.get("/api/ohlc", params={"symbol": "link"})
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Upstream failed"
    assert body["detail"]["host"] == "https://www.binance.com"
    assert body["detail"]["status"] == 500


@pytest.mark.asyncio
async def test_ohlc_malformed_klines_fall_through_to_next_host(app, client):
    def handler(request):
        if request.url.host == "api.binance.com":
            return httpx.Response(200, json=BAD_KLINES)
        return httpx.Response(200, json=KLINES)

    _use_binance(app, handler)
    r = await client.get("/api/ohlc", params={"symbol": "link"})
    assert r.status_code == 200
    assert len(r.json()["bars"]) == 2


@pytest.mark.asyncio
async def test_binance_without_hosts_raises_source_unavailable():
    c = BinanceKlinesClient(hosts=(), transport=httpx.MockTransport(lambda request: httpx.Response(200, json=KLINES)))
    try:
        with pytest.raises(SourceUnavailable) as exc:
            await c.klines("LINKUSDT")
    finally:
        await c.aclose()
    assert exc.value.status == 502
    assert exc.value.message == "no hosts configured"


# ---------------- select-matches ----------------
SM_PAYLOAD = {
    "data": [{
        "id": 555,
        "venue": "Anfield",
        "starting_at": {"date_time": "2025-08-04 19:00:00"},
        "localTeam": {"data": {"id": 8, "name": "Liverpool"}},
        "visitorTeam": {"data": {"id": 9, "name": "Everton"}},
        "league": {"data": {"id": 8, "name": "Premier League"}},
    }],
}


def _use_sportmonks(app, handler, token="sm-key"):
    async def _client():
        c = SportMonksClient(token, transport=httpx.MockTransport(handler))
        try:
            yield c
        finally:
            await c.aclose()
    app.dependency_overrides[deps.get_sportmonks] = _client


@pytest.mark.asyncio
async def test_select_matches_requires_date(client):
    r = await client.get("/api/select-matches")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_select_matches_cards_and_cache(app, client):
    calls = []

    def handler(request):
        calls.append(request)
        assert request.url.path.endswith(f"/fixtures/date/{DAY}")
        assert request.url.params["include"] == "localTeam,visitorTeam,league"
        return httpx.Response(200, json=SM_PAYLOAD)

    _use_sportmonks(app, handler)
    r = await client.get("/api/select-matches", params={"date": DAY})
    assert r.status_code == 200
    body = r.json()
    [card] = body["picks"]
    assert card["fixture_id"] == 555
    assert card["teams"]["home"] == {"id": 8, "name": "Liverpool"}
    assert card["venue"] == {"name": "Anfield"}
    assert card["datetime_local"] == "04/08, 21:00"
    assert card["model_probs"] == {"home": 0.45, "draw": 0.25, "away": 0.3}
    assert card["predicted"] == "home"
    assert card["confidence"] == 15
    assert card["rankScore"] == 15
    assert card["btts_probability"] == 0.4
    assert card["over25_probability"] == 0.323
    assert body["debug"]["sourceUsed"] == "sportmonks"
    assert body["debug"]["total_fetched"] == 1

    await client.get("/api/select-matches", params={"date": DAY})
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_select_matches_missing_key(app, client):
    _use_sportmonks(app, lambda request: httpx.Response(200, json=SM_PAYLOAD), token="")
    r = await client.get("/api/select-matches", params={"date": DAY})
    assert r.status_code == 500
    assert r.json() == {"error": "Missing SPORTMONKS_KEY env var"}


@pytest.mark.asyncio
async def test_select_matches_upstream_failure(app, client):
    _use_sportmonks(app, lambda request: httpx.Response(401, text="bad token"))
    r = await client.get("/api/select-matches", params={"date": DAY})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed fetching from sportmonks", "status": 401, "body": "bad token"}


@pytest.mark.asyncio
async def test_select_matches_unexpected_body(app, client):
    _use_sportmonks(app, lambda request: httpx.Response(200, json=[1, 2]))
    r = await client.get("/api/select-matches", params={"date": DAY})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed fetching from sportmonks", "status": 502, "body": "[1, 2]"}

    _use_sportmonks(app, lambda request: httpx.Response(200, json={"data": {"id": 1}}))
    r = await client.get("/api/select-matches", params={"date": "2025-08-05"})
    assert r.status_code == 500
    assert r.json()["error"] == "Failed fetching from sportmonks"


# ---------------- cron ----------------
@pytest.fixture
def use_sibling(app):
    async def _fetcher():
        f = LockedEndpointFetcher(
            "http://test",
            path="/api/value-bets",
            headers={INTERNAL_HEADER: "1"},
            transport=httpx.ASGITransport(app=app),
        )
        try:
            yield f
        finally:
            await f.aclose()
    app.dependency_overrides[deps.get_live_fetcher] = _fetcher


@pytest.mark.asyncio
async def test_rebuild_writes_revisions(client, use_football, use_sibling, store, settings):
    use_football(_happy_football())
    today = ymd_in_tz(settings.tz_display)

    r = await client.get("/api/cron/rebuild")
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    assert r.json() == {"ok": True, "snapshot_for": today, "count": 2, "rev": 1}

    r = await client.get("/api/cron/rebuild")
    assert r.json()["rev"] == 2
    assert store.get(f"vb:day:{today}:rev:1") is not None
    assert json.loads(store.get(f"vb:day:{today}:rev")) == 2

    r = await client.get("/api/value-bets-locked")
    assert r.json()["source"] == "snapshot"
    assert [b["fixture_id"] for b in r.json()["value_bets"]] == [2, 1]


@pytest.mark.asyncio
async def test_rebuild_truncates_to_limit(client, use_football, use_sibling, settings):
    settings.vb_limit = 1
    use_football(_happy_football())
    r = await client.get("/api/cron/rebuild")
    assert r.json()["count"] == 1


@pytest.mark.asyncio
async def test_rebuild_failure(client, use_football, use_sibling):
    use_football(football_handler([], {}, fixtures_status=503))
    r = await client.get("/api/cron/rebuild")
    assert r.status_code == 500
    assert r.json()["ok"] is False
    assert "HTTP 500" in r.json()["error"]


def _cron_request(server=("10.0.0.5", 8000)):
    return Request({
        "type": "http",
        "scheme": "http",
        "method": "GET",
        "server": server,
        "path": "/api/cron/rebuild",
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"api.example"),
            (b"x-forwarded-host", b"attacker.example"),
            (b"x-forwarded-proto", b"https"),
        ],
    })


def test_sibling_origin_ignores_client_host_headers(settings):
    assert deps.sibling_base_url(_cron_request(), settings) == "http://10.0.0.5:8000"
    assert deps.sibling_base_url(_cron_request(("10.0.0.5", 80)), settings) == "http://10.0.0.5"
    assert deps.sibling_base_url(_cron_request(None), settings) == "http://localhost"


def test_sibling_origin_prefers_configured_base_url(settings):
    configured = settings.model_copy(update={"self_base_url": "https://vb.example.com/"})
    assert deps.sibling_base_url(_cron_request(), configured) == "https://vb.example.com"


@pytest.mark.asyncio
async def test_live_fetcher_targets_own_origin(settings):
    gen = deps.get_live_fetcher(_cron_request(), settings)
    fetcher = await gen.__anext__()
    try:
        assert fetcher._http.base_url.host == "10.0.0.5"
        assert "attacker.example" not in str(fetcher._http.base_url)
        assert fetcher.path == "/api/value-bets"
    finally:
        await gen.aclose()


def _snapshot_with_kickoff(store, settings, minutes_from_now, **pick):
    today = ymd_in_tz(settings.tz_display)
    ko = (datetime.now(timezone.utc) + timedelta(minutes=minutes_from_now)).isoformat()
    bet = {"fixture_id": 1, "market": "1X2", "selection": "1", "kickoff": ko, **pick}
    store.set(f"vb:day:{today}:last", json.dumps({"value_bets": [bet], "day": today, "built_at": None}))


@pytest.mark.asyncio
async def test_closing_capture_records_trusted_median(client, use_football, store, settings):
    _snapshot_with_kickoff(store, settings, 5)
    use_football(football_handler([], {1: odds_payload(
        three_way_book("Bet365", home="2.00"),
        three_way_book("Pinnacle", home="2.20"),
        three_way_book("Unibet", home="2.50"),
        three_way_book("ShadyBooks", home="9.00"),
    )}))

    r = await client.get("/api/cron/closing-capture")
    assert r.json() == {"ok": True, "updated": 1, "scanned": 1}
    rec = json.loads(store.get("vb:close:1"))
    assert rec["trusted_median_close"] == 2.2
    assert rec["books_used"] == 3
    assert rec["spread_close_pp"] == 10.0

    # already captured
    r = await client.get("/api/cron/closing-capture")
    assert r.json() == {"ok": True, "updated": 0, "scanned": 1}


@pytest.mark.asyncio
async def test_closing_capture_outside_window(client, use_football, store, settings):
    _snapshot_with_kickoff(store, settings, 120)
    use_football(football_handler([], {}))
    r = await client.get("/api/cron/closing-capture")
    assert r.json() == {"ok": True, "updated": 0, "scanned": 0}


@pytest.mark.asyncio
async def test_closing_capture_empty_snapshot(client, use_football):
    use_football(football_handler([], {}))
    r = await client.get("/api/cron/closing-capture")
    assert r.json() == {"ok": True, "updated": 0, "note": "no union"}
