# routes/search.py
from fastapi import APIRouter, HTTPException, Request, Response, status
from typing import Optional
import logging
import time

from config import DEFAULT_PAGE_SIZE, DEFAULT_SUGGESTION_SIZE
from db.connection import search_dependency
from schemas.productManagement.search import (
    ReindexResponse,
    SearchFilters,
    SearchHealthResponse,
    SearchResult,
    SearchSort,
    SuggestionResponse,
)
from services.exceptions import CatalogException, SearchUnavailableError
from services.search_utils import normalize_pagination

router = APIRouter(prefix="/api", tags=["search"])
logger = logging.getLogger(__name__)

NO_STORE = "no-store"


@router.get("/search", response_model=SearchResult)
def search_products_endpoint(
    response: Response,
    search_service: search_dependency,
    q: Optional[str] = None,
    category_id: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    in_stock: Optional[bool] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    facets: bool = False,
    suggest: bool = False,
):
    """
    Search the active catalog.

    Facets are only returned when the search engine is serving requests. If
    the backend fails, an empty result flagged `degraded` is returned and
    marked no-store so it is never cached.
    """
    start_time = time.time()
    filters = SearchFilters(
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        search=q,
    )
    search_sort = SearchSort(field=sort, order=order)

    try:
        result = search_service.search(filters, search_sort, page, page_size, include_facets=facets)
    except CatalogException as e:
        logger.error(f"Search failed on {search_service.engine}: {e}")
        page, page_size = normalize_pagination(page, page_size)
        response.headers["Cache-Control"] = NO_STORE
        return SearchResult(page=page, page_size=page_size, degraded=True)

    if suggest and q:
        try:
            result.suggestions = search_service.suggest(q, DEFAULT_SUGGESTION_SIZE)
        except CatalogException as e:
            logger.warning(f"Suggestions failed for search request: {e}")
            result.suggestions = []

    processing_time = (time.time() - start_time) * 1000
    logger.info(
        f"Search '{q or ''}' via {search_service.engine}: {result.total} matches, "
        f"page {result.page}/{result.total_pages} ({processing_time:.1f}ms)"
    )
    return result


@router.get("/search/suggestions", response_model=SuggestionResponse)
def search_suggestions_endpoint(
    response: Response,
    search_service: search_dependency,
    q: str = "",
    size: int = DEFAULT_SUGGESTION_SIZE,
):
    try:
        return SuggestionResponse(suggestions=search_service.suggest(q, size))
    except CatalogException as e:
        logger.error(f"Suggestions failed on {search_service.engine}: {e}")
        response.headers["Cache-Control"] = NO_STORE
        return SuggestionResponse(suggestions=[], degraded=True)


@router.post("/admin/search/reindex", response_model=ReindexResponse)
def reindex_products_endpoint(search_service: search_dependency):
    try:
        indexed = search_service.reindex_all()
    except SearchUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    except CatalogException as e:
        logger.error(f"Reindex failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return ReindexResponse(message="Reindex completed", indexed=indexed)


@router.get("/admin/search/health", response_model=SearchHealthResponse)
def search_health_endpoint(request: Request, response: Response, search_service: search_dependency):
    response.headers["Cache-Control"] = NO_STORE
    cache = getattr(request.app.state, "cache", None)
    return SearchHealthResponse(
        engine=search_service.engine,
        cache_available=cache.available if cache is not None else False,
        index_failures=search_service.index_failures,
    )
