# tests/conftest.py
import sys
import os
from collections import OrderedDict

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

import pytest
from httpx import ASGITransport, AsyncClient

from catalog.cache import PriceCache
from fakes import NOW_MS, FakeCollection, FakeUpstream, search_payload


@pytest.fixture
def sample_results():
    """
    Three search hits: one priced by suggestions, one by stats, one unpriced.

    - 101 "Blue Train" (1957): VG+ suggestion of 20
    - 102 "Kind of Blue" (1959): stats median 12
    - 103 "Giant Steps" (no year): nothing anywhere
    """
    return [
        {"id": 101, "title": "Blue Train", "year": "1957", "cover_image": "https://img/101.jpg", "catno": "BLP 1577"},
        {"id": 102, "title": "Kind of Blue", "year": "1959", "thumb": "https://img/102-thumb.jpg"},
        {"id": 103, "title": "Giant Steps", "year": ""},
    ]


@pytest.fixture
def upstream(sample_results):
    fake = FakeUpstream()
    fake.add("/database/search", json=search_payload(sample_results, page=1, pages=3))
    fake.add(
        "/marketplace/price_suggestions/101",
        json={
            "Very Good Plus (VG+)": {"currency": "USD", "value": 20.0},
            "Near Mint (NM or M-)": {"currency": "USD", "value": 30.0},
        },
    )
    fake.add("/marketplace/price_suggestions/102", status=401, json={"message": "You must authenticate"})
    fake.add(
        "/marketplace/stats/102",
        json={"lowest_price": 9.0, "median": 12.0, "highest_price": 20.0, "num_for_sale": 3},
    )
    fake.add("/marketplace/price_suggestions/103", status=500, json={"message": "boom"})
    fake.add("/marketplace/stats/103", status=404, json={"message": "Release not found."})
    fake.add("/releases/103", json={"id": 103, "title": "Giant Steps", "lowest_price": None})
    return fake


@pytest.fixture
async def catalog_client(upstream):
    client = upstream.client()
    yield client
    await client.close()


@pytest.fixture
def fake_collection():
    return FakeCollection()


@pytest.fixture
def clock():
    """Mutable fake clock in epoch millis; set ``clock.now`` to move time."""

    class Clock:
        now = NOW_MS

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def price_cache(fake_collection, clock):
    return PriceCache(fake_collection, ttl_hours=24, clock=clock)


@pytest.fixture
async def client(monkeypatch, upstream, fake_collection):
    """
    Async API client with the catalog upstream and MongoDB replaced by fakes.

    Sessions start empty and the enrichment delay is zero so tests run
    without sleeping.
    """
    catalog = upstream.client()
    monkeypatch.setattr("api.main.get_catalog_client", lambda: catalog)
    monkeypatch.setattr("api.main.get_price_collection", lambda: fake_collection)
    monkeypatch.setattr("api.main.ENRICH_DELAY_MS", 0)
    monkeypatch.setattr("api.main._sessions", OrderedDict())

    from api.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await catalog.close()
