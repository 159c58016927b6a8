# catalog/enrichment.py
import asyncio
import os

from dotenv import load_dotenv

from .logger import get_logger
from .models import PriceEstimate
from .utils import is_number, observed_ceiling, representative_price

load_dotenv()
ENRICH_DELAY_MS = int(os.getenv("ENRICH_DELAY_MS", "150"))

logger = get_logger("catalog.enrichment")


class CancelToken:
    """Flag shared between a search run and its in-flight enrichment."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self):
        return self._cancelled


class EnrichmentState:
    """
    Prices resolved for one search run and the range derived from them.

    Owned by the run; the pipeline writes into it and the projection reads
    from it. ``ready`` only becomes True once a full batch has committed.
    """

    def __init__(self):
        self.prices = {}
        self.ready = False
        self.enriching = False
        self.floor = 0
        self.ceiling = 100
        self.selected_min = 0
        self.selected_max = 100

    def price_for(self, release_id):
        return self.prices.get(release_id) or PriceEstimate()

    def commit_range(self, ceiling):
        self.floor = 0
        self.ceiling = ceiling
        self.selected_min = 0
        self.selected_max = ceiling


class MarketEstimateResolver:
    name = "marketplace"

    def __init__(self, client):
        self.client = client

    async def resolve(self, release_id):
        return await self.client.get_price_estimate(release_id)


class ReleaseLowestResolver:
    """One-point estimate from the release record's ``lowest_price``."""

    name = "release_lowest"

    def __init__(self, client):
        self.client = client

    async def resolve(self, release_id):
        release = await self.client.get_item(release_id)
        lowest = release.get("lowest_price") if isinstance(release, dict) else None
        if not is_number(lowest):
            return None
        return PriceEstimate(typical=lowest, min=lowest, max=lowest, source="release_lowest")


class PriceEnricher:
    """
    Sequentially resolve a price estimate for each search result.

    Items are processed one at a time, in input order, with a fixed pause
    after each one (cache hit or not) to stay under upstream rate limits.

    Args:
        cache (PriceCache): persisted estimate cache
        resolvers (list): ordered strategies exposing ``async resolve(id)``
        delay_ms (int): pause between items
    """

    def __init__(self, cache, resolvers, delay_ms=ENRICH_DELAY_MS):
        self.cache = cache
        self.resolvers = list(resolvers)
        self.delay = delay_ms / 1000.0

    @classmethod
    def for_client(cls, client, cache, delay_ms=ENRICH_DELAY_MS):
        return cls(
            cache,
            [MarketEstimateResolver(client), ReleaseLowestResolver(client)],
            delay_ms=delay_ms,
        )

    async def resolve(self, release_id):
        """
        Run the resolver chain for one release.

        Returns the first estimate carrying a number. When none does, the
        first estimate any resolver produced is kept (it may be empty), so
        its source still tells which lookup answered.

        Returns:
            PriceEstimate: never None; empty when nothing answered
        """
        fallback = None
        for resolver in self.resolvers:
            try:
                estimate = await resolver.resolve(release_id)
            except Exception as e:
                logger.debug(f"Resolver {resolver.name} failed for {release_id}: {e}")
                continue
            if estimate is None:
                continue
            if estimate.has_numbers():
                return estimate
            if fallback is None:
                fallback = estimate
        return fallback or PriceEstimate()

    async def lookup(self, release_id):
        cached = await self.cache.read(release_id)
        if cached is not None:
            return cached
        estimate = await self.resolve(release_id)
        # written even when empty so failures aren't re-queried every session
        await self.cache.write(release_id, estimate)
        return estimate

    async def enrich(self, records, state, token=None):
        """
        Fill ``state`` with estimates for ``records`` and derive the range.

        Args:
            records (list[SearchResult]): results in display order
            state (EnrichmentState): state owned by the current search run
            token (CancelToken, optional): checked before each commit

        Returns:
            bool: True when the batch completed, False when it was cancelled

        Note:
            Nothing is committed to ``state`` after the token is cancelled,
            so a slow stale batch can never overwrite a newer search.
        """
        token = token or CancelToken()
        state.enriching = True
        state.ready = False
        try:
            for record in records:
                try:
                    estimate = await self.lookup(record.id)
                except Exception as e:
                    logger.debug(f"Price lookup failed for {record.id}: {e}")
                    estimate = PriceEstimate()

                if token.cancelled:
                    logger.info("Enrichment cancelled; discarding stale prices")
                    return False
                state.prices[record.id] = estimate

                await asyncio.sleep(self.delay)

            if token.cancelled:
                return False
            prices = [representative_price(state.price_for(r.id)) for r in records]
            state.commit_range(observed_ceiling(prices))
            state.ready = True
            logger.info(
                f"Enriched {len(records)} records, price ceiling {state.ceiling}"
            )
            return True
        finally:
            state.enriching = False
