# catalog/session.py
from .enrichment import CancelToken, EnrichmentState, PriceEnricher
from .logger import get_logger
from .models import Pagination

DEFAULT_PAGE_SIZE = 12

logger = get_logger("catalog.session")


def normalize_term(q=None, legacy_search=None):
    """Resolve the search term; the old ``search`` parameter is an alias of ``q``."""
    return (q or legacy_search or "").strip()


class SearchRun:
    """One search (term, page) with its records, prices and cancel token."""

    def __init__(self, term, page):
        self.term = term
        self.page = page
        self.records = []
        self.pagination = Pagination()
        self.state = EnrichmentState()
        self.token = CancelToken()
        self.error = ""

    @property
    def query_key(self):
        return f"{self.term}::{self.page}"

    @property
    def cancelled(self):
        return self.token.cancelled


class SearchSession:
    """
    A user's search context.

    Only the latest run is live: starting a search cancels the previous
    run's token so its enrichment stops committing prices.
    """

    def __init__(self, client, cache, enricher=None):
        self.client = client
        self.cache = cache
        self.enricher = enricher or PriceEnricher.for_client(client, cache)
        self.current = None

    async def search(self, term, page=1, per_page=DEFAULT_PAGE_SIZE):
        """
        Start a new search run, superseding any previous one.

        Raises:
            ConfigError, UpstreamError, httpx.HTTPError: the search failed;
                the run is left with no records and ``run.error`` set
        """
        if self.current is not None:
            self.current.token.cancel()
        run = SearchRun(term, page)
        self.current = run

        logger.info(f"Search triggered for: {run.query_key}")
        try:
            result = await self.client.search(term, page, per_page)
        except Exception as e:
            run.error = str(e) or "Search failed"
            run.records = []
            run.pagination = Pagination(page=1, pages=1)
            logger.warning(f"Search failed for {run.query_key}: {run.error}")
            raise
        run.records = list(result.results)
        run.pagination = result.pagination
        return run

    async def load_prices(self, run):
        if not run.records:
            return False
        return await self.enricher.enrich(run.records, run.state, run.token)
