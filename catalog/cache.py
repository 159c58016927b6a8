# catalog/cache.py
import os
import time

from dotenv import load_dotenv
from pydantic import ValidationError

from .logger import get_logger
from .models import PriceEstimate
from .utils import is_number

load_dotenv()
PRICE_CACHE_TTL_HOURS = float(os.getenv("PRICE_CACHE_TTL_HOURS", "24"))
KEY_PREFIX = "discogs:price:"

logger = get_logger("catalog.cache")


def cache_key(release_id):
    return f"{KEY_PREFIX}{release_id}"


def now_ms():
    return int(time.time() * 1000)


class PriceCache:
    """
    Persisted, time-bounded store of price estimates keyed by release id.

    Each document looks like ``{"_id": "discogs:price:<id>", "ts": <epoch
    millis>, "v": <estimate>}``. Entries are never deleted; once their age
    reaches the TTL they are simply ignored on read.

    Args:
        collection: Motor collection (or anything with async ``find_one`` and
            ``update_one``)
        ttl_hours (float): time-to-live of an entry
        clock (callable): returns the current time in epoch milliseconds
    """

    def __init__(self, collection, ttl_hours=PRICE_CACHE_TTL_HOURS, clock=now_ms):
        self.collection = collection
        self.ttl_ms = int(ttl_hours * 60 * 60 * 1000)
        self.clock = clock

    async def read(self, release_id):
        """
        Return the cached estimate, or None when missing, malformed or stale.

        An entry written exactly one TTL ago is already stale.
        """
        try:
            doc = await self.collection.find_one({"_id": cache_key(release_id)})
        except Exception as e:
            logger.warning(f"Price cache read failed for {release_id}: {e}")
            return None
        if not isinstance(doc, dict):
            return None
        ts, value = doc.get("ts"), doc.get("v")
        if not is_number(ts) or not isinstance(value, dict):
            return None
        if self.clock() - ts >= self.ttl_ms:
            return None
        try:
            return PriceEstimate.model_validate(value)
        except ValidationError:
            return None

    async def write(self, release_id, estimate):
        """Store the estimate with the current timestamp; failures are ignored."""
        estimate = estimate or PriceEstimate()
        try:
            await self.collection.update_one(
                {"_id": cache_key(release_id)},
                {"$set": {"ts": self.clock(), "v": estimate.to_cache()}},
                upsert=True,
            )
        except Exception as e:
            logger.warning(f"Price cache write failed for {release_id}: {e}")
