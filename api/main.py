# api/main.py
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Optional
import os

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .errors import register_error_handlers
from .rate_limit import API_RATE_LIMIT, limiter, register_rate_limit
from catalog.cache import PriceCache
from catalog.client import CatalogClient
from catalog.db import get_price_collection
from catalog.detail import load_record_detail
from catalog.enrichment import ENRICH_DELAY_MS, PriceEnricher
from catalog.logger import get_logger
from catalog.models import FilterState, SortOption
from catalog.projection import cover_url, format_usd, price_range, project
from catalog.session import DEFAULT_PAGE_SIZE, SearchSession, normalize_term

load_dotenv()
API_PORT = int(os.getenv("API_PORT", "8000"))
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "256"))

logger = get_logger("api")

_catalog_client = None
# least recently used first
_sessions = OrderedDict()


def get_catalog_client():
    """Return the shared CatalogClient, creating it on first use."""
    global _catalog_client
    if _catalog_client is None:
        _catalog_client = CatalogClient()
    return _catalog_client


def get_session(session_id):
    """
    Return the search session for ``session_id``, creating it if needed.

    At most ``MAX_SESSIONS`` are kept; creating one more drops the least
    recently used. A request already running on a dropped session still
    finishes with the run it holds.
    """
    session = _sessions.get(session_id)
    if session is not None:
        _sessions.move_to_end(session_id)
        return session

    client = get_catalog_client()
    cache = PriceCache(get_price_collection())
    enricher = PriceEnricher.for_client(client, cache, delay_ms=ENRICH_DELAY_MS)
    session = SearchSession(client, cache, enricher)
    _sessions[session_id] = session
    while len(_sessions) > MAX_SESSIONS:
        evicted, _ = _sessions.popitem(last=False)
        logger.debug(f"Dropped search session {evicted}")
    return session


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _catalog_client
    yield
    if _catalog_client is not None:
        await _catalog_client.close()
        _catalog_client = None


app = FastAPI(title="Vinyl Catalog API", version="1.0", lifespan=lifespan)

register_rate_limit(app)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def result_to_resp(result):
    """
    Shape an enriched search result for the results grid.

    Adds the resolved cover URL (cover image, thumbnail, or placeholder)
    and the whole-dollar price text next to the raw fields.
    """
    data = result.model_dump()
    data["cover"] = cover_url(result)
    data["price_text"] = format_usd(result.price)
    return data


@app.get("/health")
async def health():
    return {"status": "ok", "token_configured": bool(get_catalog_client().token)}


@app.get("/api/search")
@limiter.limit(API_RATE_LIMIT)
async def search_records(
    request: Request,
    q: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    sort: SortOption = Query(SortOption.RELEVANCE),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    include_unknown: bool = Query(True),
    session: str = Query("default"),
):
    """
    Search releases, resolve their prices, then filter and sort them.

    Args:
        request (Request): FastAPI request object (required for rate limiting)
        q (str, optional): search term
        search (str, optional): legacy alias of ``q``
        page (int): 1-based page number
        per_page (int): page size, 1-100
        sort (SortOption): relevance, year-asc, year-desc, title-asc,
            price-asc or price-desc
        min_price / max_price (float, optional): inclusive price window;
            defaults to the full observed range
        include_unknown (bool): keep results without a price
        session (str): search session id; a newer search on the same
            session supersedes one still resolving prices

    Returns:
        dict: query, page, pages, count, results, price_range

    Raises:
        HTTPException: 400 without a search term, 409 when superseded
    """
    term = normalize_term(q, search)
    if not term:
        raise HTTPException(status_code=400, detail="Query parameter `q` is required")

    search_session = get_session(session)
    run = await search_session.search(term, page, per_page)
    await search_session.load_prices(run)
    if run.cancelled:
        raise HTTPException(status_code=409, detail="Search superseded by a newer query")

    state = run.state
    filters = FilterState(
        min_price=state.selected_min if min_price is None else min_price,
        max_price=state.selected_max if max_price is None else max_price,
        include_unknown=include_unknown,
    )
    displayed = project(run.records, state, filters, sort)

    return {
        "query": term,
        "page": run.pagination.page,
        "pages": run.pagination.pages,
        "count": len(displayed),
        "results": [result_to_resp(r) for r in displayed],
        "price_range": price_range(state, filters).model_dump(),
    }


@app.get("/api/records/{release_id}")
@limiter.limit(API_RATE_LIMIT)
async def get_record(request: Request, release_id: int):
    """Release detail with marketplace summary; stats failures never block it."""
    detail = await load_record_detail(get_catalog_client(), release_id)
    return detail.model_dump()


# Run uvicorn externally or here
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=API_PORT, reload=True)
