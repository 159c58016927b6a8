# tests/test_cache.py
import pytest

from catalog.cache import PriceCache, cache_key
from catalog.models import PriceEstimate
from fakes import NOW_MS, BrokenCollection, FakeCollection

DAY_MS = 24 * 60 * 60 * 1000


@pytest.mark.asyncio
async def test_write_then_read_returns_estimate(price_cache, fake_collection):
    await price_cache.write(101, PriceEstimate(typical=20, min=20, max=30, source="suggestions"))

    doc = fake_collection.docs["discogs:price:101"]
    assert doc["ts"] == NOW_MS
    assert doc["v"] == {"typical": 20, "min": 20, "max": 30, "source": "suggestions"}

    cached = await price_cache.read(101)
    assert cached.typical == 20
    assert cached.source == "suggestions"


@pytest.mark.asyncio
async def test_entry_expires_exactly_at_ttl(price_cache, clock):
    await price_cache.write(5, PriceEstimate(typical=7, source="stats"))

    clock.now = NOW_MS + DAY_MS - 1
    assert (await price_cache.read(5)).typical == 7

    clock.now = NOW_MS + DAY_MS
    assert await price_cache.read(5) is None

    clock.now = NOW_MS + 2 * DAY_MS
    assert await price_cache.read(5) is None


@pytest.mark.asyncio
async def test_empty_estimate_is_a_cache_hit(price_cache):
    await price_cache.write(9, PriceEstimate())
    cached = await price_cache.read(9)
    assert cached is not None
    assert not cached.has_numbers()


@pytest.mark.asyncio
async def test_missing_entry_reads_none(price_cache):
    assert await price_cache.read(404) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "doc",
    [
        {"ts": "yesterday", "v": {"typical": 1}},
        {"ts": NOW_MS},
        {"ts": NOW_MS, "v": "12"},
        {"ts": NOW_MS, "v": {"typical": "cheap"}},
        {"ts": NOW_MS, "v": {"source": "auction"}},
    ],
)
async def test_malformed_entry_reads_none(clock, doc):
    collection = FakeCollection([dict(doc, _id=cache_key(1))])
    cache = PriceCache(collection, clock=clock)
    assert await cache.read(1) is None


@pytest.mark.asyncio
async def test_storage_failures_are_ignored(clock):
    cache = PriceCache(BrokenCollection(), clock=clock)
    await cache.write(1, PriceEstimate(typical=3))
    assert await cache.read(1) is None


@pytest.mark.asyncio
async def test_rewrite_refreshes_timestamp(price_cache, fake_collection, clock):
    await price_cache.write(2, PriceEstimate(typical=1))
    clock.now = NOW_MS + 1000
    await price_cache.write(2, PriceEstimate(typical=2))
    assert fake_collection.docs["discogs:price:2"]["ts"] == NOW_MS + 1000
    assert (await price_cache.read(2)).typical == 2
