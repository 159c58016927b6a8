# tests/test_api.py
import asyncio
from collections import OrderedDict

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "token_configured": True}


@pytest.mark.asyncio
async def test_search_returns_enriched_results(client: AsyncClient):
    """
    Search enriches every hit with a display price and a price range.

    Asserts:
        - results keep relevance order with prices from suggestions and stats
        - the unpriced record is still shown (unknown prices included)
        - the observed ceiling is floored at 50 and quick ranges are listed
    """
    r = await client.get("/api/search?q=coltrane")
    assert r.status_code == 200
    data = r.json()

    assert data["query"] == "coltrane"
    assert data["page"] == 1
    assert data["pages"] == 3
    assert data["count"] == 3
    assert [(x["id"], x["price"], x["price_source"]) for x in data["results"]] == [
        (101, 20, "suggestions"),
        (102, 12, "stats"),
        (103, None, ""),
    ]
    assert data["results"][0]["price_text"] == "$20"
    assert data["results"][1]["cover"] == "https://img/102-thumb.jpg"
    assert data["results"][2]["price_text"] == "—"

    price_range = data["price_range"]
    assert (price_range["floor"], price_range["ceiling"]) == (0, 50)
    assert (price_range["min"], price_range["max"]) == (0, 50)
    assert [q["label"] for q in price_range["quick_ranges"]] == ["$0–$20", "$20–$50", "$50–$100", "All"]


@pytest.mark.asyncio
async def test_search_caches_prices_between_searches(client: AsyncClient, upstream, fake_collection):
    await client.get("/api/search?q=coltrane")
    assert "discogs:price:103" in fake_collection.docs

    upstream.calls.clear()
    r = await client.get("/api/search?q=coltrane")
    assert r.status_code == 200
    assert upstream.paths() == ["/database/search"]


@pytest.mark.asyncio
async def test_legacy_search_parameter(client: AsyncClient, upstream):
    r = await client.get("/api/search?search=miles")
    assert r.status_code == 200
    assert r.json()["query"] == "miles"
    assert upstream.calls[0][1]["q"] == "miles"


@pytest.mark.asyncio
async def test_search_without_term_is_rejected(client: AsyncClient, upstream):
    r = await client.get("/api/search")
    assert r.status_code == 400
    assert r.json()["error"] is True
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_search_sort_and_filter(client: AsyncClient):
    r = await client.get("/api/search?q=coltrane&sort=price-desc")
    assert [x["id"] for x in r.json()["results"]] == [103, 101, 102]

    r = await client.get("/api/search?q=coltrane&sort=price-asc&include_unknown=false")
    assert [x["id"] for x in r.json()["results"]] == [102, 101]

    r = await client.get("/api/search?q=coltrane&min_price=15&max_price=50")
    data = r.json()
    assert [x["id"] for x in data["results"]] == [101, 103]
    assert (data["price_range"]["min"], data["price_range"]["max"]) == (15, 50)


@pytest.mark.asyncio
async def test_invalid_sort_is_validation_error(client: AsyncClient):
    r = await client.get("/api/search?q=coltrane&sort=cheapest")
    assert r.status_code == 422
    data = r.json()
    assert data["error"] is True
    assert data["status_code"] == 422
    assert data["retry"].endswith("/api/search?q=coltrane&sort=cheapest")
    assert data["details"][0]["field"] == "query -> sort"


@pytest.mark.asyncio
async def test_search_upstream_failure_is_surfaced(client: AsyncClient, upstream):
    upstream.add("/database/search", status=500, json={"message": "Something went wrong"})
    r = await client.get("/api/search?q=coltrane")
    assert r.status_code == 502
    data = r.json()
    assert data["error"] is True
    assert "Something went wrong" in data["message"]
    assert data["retry"].endswith("/api/search?q=coltrane")


@pytest.mark.asyncio
async def test_missing_token_is_configuration_error(client: AsyncClient, upstream, monkeypatch):
    monkeypatch.setattr("api.main.get_catalog_client", lambda: upstream.client(token=""))
    monkeypatch.setattr("api.main._sessions", OrderedDict())
    r = await client.get("/api/search?q=coltrane")
    assert r.status_code == 503
    assert "DISCOGS_TOKEN" in r.json()["message"]
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_record_detail(client: AsyncClient, upstream):
    upstream.add(
        "/releases/249504",
        json={
            "id": 249504,
            "title": "Never Gonna Give You Up",
            "year": 1987,
            "country": "UK",
            "images": [{"uri": "https://img/249504.jpg"}],
            "labels": [{"name": "RCA", "catno": "PB 41447"}],
            "formats": [{"name": "Vinyl", "descriptions": ['7"', "Single"]}],
            "genres": ["Electronic", "Pop"],
            "community": {"rating": {"average": 3.42, "count": 93}, "have": 252, "want": 42},
            "tracklist": [{"position": "A", "title": "Never Gonna Give You Up", "duration": "3:32"}],
        },
    )
    upstream.add(
        "/marketplace/stats/249504",
        json={"lowest_price": 1.5, "median": 4.25, "highest_price": 30, "num_for_sale": 58},
    )

    r = await client.get("/api/records/249504")
    assert r.status_code == 200
    data = r.json()
    assert data["labels"] == "RCA (PB 41447)"
    assert data["formats"] == 'Vinyl 7" Single'
    assert data["styles"] == "—"
    assert data["tracklist"][0]["line"] == "A - Never Gonna Give You Up (3:32)"
    assert data["marketplace"]["median_text"] == "$4.25"
    assert data["marketplace"]["for_sale"] == 58
    assert data["discogs_url"] == "https://www.discogs.com/release/249504"


@pytest.mark.asyncio
async def test_record_detail_without_stats(client: AsyncClient):
    r = await client.get("/api/records/103")
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Giant Steps"
    assert data["cover"] == "/placeholder.png"
    assert data["marketplace"]["lowest"] is None
    assert data["marketplace"]["lowest_text"] == "—"


@pytest.mark.asyncio
async def test_record_not_found(client: AsyncClient):
    r = await client.get("/api/records/999")
    assert r.status_code == 404
    assert r.json()["message"].startswith("404")


@pytest.mark.asyncio
async def test_newer_search_on_same_session_supersedes_running_one(client: AsyncClient, upstream):
    # hold the first request inside its price lookups
    gate = upstream.gate("/marketplace/price_suggestions/102")

    first = asyncio.create_task(client.get("/api/search?q=coltrane&session=u"))
    await gate.entered.wait()

    second = await client.get("/api/search?q=coltrane&session=u")
    gate.open()
    first = await first

    assert first.status_code == 409
    assert first.json()["error"] is True
    assert second.status_code == 200
    data = second.json()
    assert [x["id"] for x in data["results"]] == [101, 102, 103]
    assert [x["price"] for x in data["results"]] == [20, 12, None]


@pytest.mark.asyncio
async def test_session_registry_keeps_most_recent_sessions(client: AsyncClient, monkeypatch):
    sessions = OrderedDict()
    monkeypatch.setattr("api.main._sessions", sessions)
    monkeypatch.setattr("api.main.MAX_SESSIONS", 3)

    for i in range(5):
        r = await client.get(f"/api/search?q=coltrane&session=s{i}")
        assert r.status_code == 200
    assert list(sessions) == ["s2", "s3", "s4"]

    # reusing a session makes it most recent, so s3 is dropped next
    await client.get("/api/search?q=coltrane&session=s2")
    await client.get("/api/search?q=coltrane&session=s5")
    assert list(sessions) == ["s4", "s2", "s5"]
