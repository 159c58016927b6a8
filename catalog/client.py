# catalog/client.py
import json
import os

from dotenv import load_dotenv
from httpx import AsyncClient

from .logger import get_logger
from .models import PriceEstimate, SearchPage
from .utils import first_number, is_number, lower_median

load_dotenv()
DISCOGS_BASE_URL = os.getenv("DISCOGS_BASE_URL", "https://api.discogs.com")
DISCOGS_TOKEN = os.getenv("DISCOGS_TOKEN")
DISCOGS_TIMEOUT = float(os.getenv("DISCOGS_TIMEOUT", "30"))
CURRENCY = "USD"

# condition grades checked in order when picking the typical suggestion
PREFERRED_CONDITIONS = (
    "Very Good Plus (VG+)",
    "Near Mint (NM or M-)",
    "Very Good (VG)",
)
NOT_AVAILABLE_STATUSES = (404, 429)

logger = get_logger("catalog.client")


class CatalogError(Exception):
    """Base class for catalog client errors."""


class ConfigError(CatalogError):
    pass


class AuthError(ConfigError):
    """Raised before any request when no access token is configured."""

    def __init__(self, message="Missing Discogs token (DISCOGS_TOKEN)."):
        super().__init__(message)
        self.status = 401


class UpstreamError(CatalogError):
    """Non-success HTTP response from the catalog API."""

    def __init__(self, status, detail, reason=""):
        self.status = status
        self.detail = detail
        self.reason = reason
        super().__init__(f"{status} {reason} - {detail}")


def extract_detail(resp):
    """
    Build a readable error detail from a failed response.

    Uses the JSON body's ``message`` when present, otherwise the whole JSON
    body. A body that is not JSON falls back to the reason phrase.
    """
    try:
        data = resp.json()
    except ValueError:
        return resp.reason_phrase or "Unknown error"
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return json.dumps(data)


def raise_for_upstream(resp):
    if resp.is_success:
        return
    raise UpstreamError(resp.status_code, extract_detail(resp), resp.reason_phrase)


def json_object(resp):
    """
    Parse a successful response whose body must be a JSON object.

    Raises:
        UpstreamError: the body is not JSON, or is JSON but not an object
    """
    try:
        data = resp.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        raise UpstreamError(resp.status_code, "Malformed response body", resp.reason_phrase)
    return data


def estimate_from_suggestions(suggestions):
    """
    Derive a price estimate from a condition -> {value} mapping.

    Args:
        suggestions (dict): price suggestions keyed by condition label

    Returns:
        PriceEstimate: typical from the preferred conditions (VG+, NM, VG),
            else the lower median of every numeric value; min/max are the
            numeric extremes. Fields stay None when nothing is numeric.
    """
    suggestions = suggestions if isinstance(suggestions, dict) else {}

    def value_of(entry):
        return entry.get("value") if isinstance(entry, dict) else None

    values = [v for v in map(value_of, suggestions.values()) if is_number(v)]
    preferred = first_number(*(value_of(suggestions.get(k)) for k in PREFERRED_CONDITIONS))
    typical = preferred if preferred is not None else lower_median(values)
    return PriceEstimate(
        typical=typical,
        min=min(values) if values else None,
        max=max(values) if values else None,
        source="suggestions",
    )


def estimate_from_stats(stats):
    stats = stats if isinstance(stats, dict) else {}
    lowest = stats.get("lowest_price")
    highest = stats.get("highest_price")
    for_sale = stats.get("num_for_sale")
    if for_sale is None:
        for_sale = stats.get("number_for_sale")
    return PriceEstimate(
        typical=first_number(stats.get("median"), lowest),
        min=lowest if is_number(lowest) else None,
        max=highest if is_number(highest) else None,
        for_sale=for_sale if is_number(for_sale) else None,
        source="stats",
    )


class CatalogClient:
    def __init__(self, token=None, base_url=None, timeout=None, transport=None):
        self.token = token if token is not None else DISCOGS_TOKEN
        self.base_url = (base_url or DISCOGS_BASE_URL).rstrip("/")
        kwargs = {"timeout": timeout or DISCOGS_TIMEOUT}
        if transport is not None:
            kwargs["transport"] = transport
        self.client = AsyncClient(**kwargs)
        self._estimate_strategies = (self._from_suggestions, self._from_stats)

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    def _require_token(self):
        if not self.token:
            raise AuthError()

    async def _get(self, path, params=None):
        """
        Issue an authenticated GET against the catalog API.

        The access token travels as the ``token`` query parameter.
        Returns the raw response; status handling is left to callers.
        """
        self._require_token()
        query = dict(params or {})
        query["token"] = self.token
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"GET {url}")
        return await self.client.get(url, params=query)

    async def search(self, term, page=1, per_page=12):
        """
        Search releases matching ``term``.

        Args:
            term (str): free-text query (artist, album, ...)
            page (int): 1-based page number
            per_page (int): page size requested from upstream

        Returns:
            SearchPage: results and pagination as reported upstream

        Raises:
            AuthError: no token configured (nothing is sent)
            UpstreamError: non-success response, with parsed detail
        """
        resp = await self._get(
            "/database/search",
            {"q": term, "type": "release", "page": page, "per_page": per_page},
        )
        raise_for_upstream(resp)
        data = json_object(resp)
        raw = data.get("results")
        results = [r for r in raw if isinstance(r, dict)] if isinstance(raw, list) else []
        pagination = data.get("pagination") if isinstance(data.get("pagination"), dict) else {}
        return SearchPage.model_validate({"results": results, "pagination": pagination})

    async def get_item(self, release_id):
        """Fetch the full release record (images, labels, lowest_price, ...)."""
        resp = await self._get(f"/releases/{release_id}")
        raise_for_upstream(resp)
        return json_object(resp)

    async def get_marketplace_stats(self, release_id):
        """Raw marketplace stats, or None on any non-success or malformed response."""
        resp = await self._get(
            f"/marketplace/stats/{release_id}", {"curr_abbr": CURRENCY}
        )
        if not resp.is_success:
            return None
        try:
            return json_object(resp)
        except UpstreamError:
            return None

    async def _from_suggestions(self, release_id):
        resp = await self._get(
            f"/marketplace/price_suggestions/{release_id}", {"curr_abbr": CURRENCY}
        )
        if not resp.is_success:
            return None
        return estimate_from_suggestions(resp.json())

    async def _from_stats(self, release_id):
        resp = await self._get(
            f"/marketplace/stats/{release_id}", {"curr_abbr": CURRENCY}
        )
        if resp.status_code in NOT_AVAILABLE_STATUSES:
            return None
        raise_for_upstream(resp)
        return estimate_from_stats(resp.json())

    async def get_price_estimate(self, release_id):
        """
        Resolve a marketplace price estimate for one release.

        Strategies run in order (price suggestions, then marketplace stats);
        the first one returning an estimate wins. A strategy that fails for
        any reason counts as having no answer.

        Returns:
            PriceEstimate or None: None when no strategy produced an estimate

        Raises:
            AuthError: no token configured
        """
        self._require_token()
        for strategy in self._estimate_strategies:
            try:
                estimate = await strategy(release_id)
            except AuthError:
                raise
            except Exception as e:
                logger.debug(f"{strategy.__name__} failed for {release_id}: {e}")
                continue
            if estimate is not None:
                return estimate
        return None
