# services/search_service.py
import logging
import threading
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from config import DEFAULT_SUGGESTION_SIZE, ELASTICSEARCH_URL
from models.Products import Product
from schemas.productManagement.search import SearchFilters, SearchResult, SearchSort
from services.elasticsearch_service import ElasticsearchService
from services.exceptions import SearchQueryError, SearchUnavailableError
from services.fallback_search import fallback_search_products, fallback_suggestions
from services.search_utils import normalize_pagination

logger = logging.getLogger(__name__)

ENGINE = "elasticsearch"
FALLBACK = "database"


class SearchService:
    """
    Federates product search between Elasticsearch and the relational store.

    The engine is probed once at construction. If the probe fails the instance
    stays in database fallback mode for its whole lifetime; a restart is needed
    to pick the engine back up. Every call is answered by exactly one backend.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        elasticsearch: Optional[ElasticsearchService] = None,
    ):
        self.session_factory = session_factory
        self.elasticsearch: Optional[ElasticsearchService] = None
        self.index_failures = 0
        self._failures_lock = threading.Lock()

        if elasticsearch is None:
            logger.warning("Elasticsearch not configured, falling back to database search")
            return

        if not elasticsearch.ping():
            logger.warning("Elasticsearch not available, falling back to database search")
            return

        self.elasticsearch = elasticsearch
        try:
            elasticsearch.ensure_index()
        except Exception as e:
            logger.warning(f"Failed to initialize Elasticsearch index: {e}")
        logger.info("Search service using Elasticsearch")

    @classmethod
    def from_config(cls, session_factory: Callable[[], Session], url: str = ELASTICSEARCH_URL) -> "SearchService":
        if not url:
            return cls(session_factory)
        return cls(session_factory, ElasticsearchService.from_url(url))

    @property
    def fallback_mode(self) -> bool:
        return self.elasticsearch is None

    @property
    def engine(self) -> str:
        return FALLBACK if self.fallback_mode else ENGINE

    def search(
        self,
        filters: SearchFilters,
        sort: SearchSort,
        page: int = 1,
        page_size: int = 0,
        include_facets: bool = False,
    ) -> SearchResult:
        page, page_size = normalize_pagination(page, page_size)

        if not self.fallback_mode:
            return self.elasticsearch.search_products(filters, sort, page, page_size, include_facets)

        with self.session_factory() as db:
            return fallback_search_products(db, filters, sort, page, page_size)

    def suggest(self, prefix: str, size: int = 0) -> List[str]:
        if size is None or size <= 0:
            size = DEFAULT_SUGGESTION_SIZE
        prefix = (prefix or "").strip()
        if not prefix:
            return []

        if not self.fallback_mode:
            return self.elasticsearch.get_suggestions(prefix, size)

        with self.session_factory() as db:
            return fallback_suggestions(db, prefix, size)

    # ---------------- INDEX MAINTENANCE ----------------
    def index_entry(self, product: Product) -> None:
        """Upsert a product document. Never raises; failures are recorded as index drift."""
        if self.fallback_mode:
            return
        try:
            self.elasticsearch.index_product(product)
        except Exception as e:
            self._record_index_failure("index", product.id, e)

    def remove_entry(self, product_id: str) -> None:
        """Remove a product document. Never raises; failures are recorded as index drift."""
        if self.fallback_mode:
            return
        try:
            self.elasticsearch.delete_product(product_id)
        except Exception as e:
            self._record_index_failure("remove", product_id, e)

    def reindex_all(self) -> int:
        """Rebuild the index from active products. Returns the number of documents indexed."""
        if self.fallback_mode:
            raise SearchUnavailableError("reindex_all")

        with self.session_factory() as db:
            try:
                products = db.execute(
                    select(Product)
                    .options(selectinload(Product.category))
                    .where(Product.is_active.is_(True))
                ).scalars().all()
            except SQLAlchemyError as e:
                raise SearchQueryError(FALLBACK, f"failed to fetch products for reindexing: {e}")

            indexed, errors = self.elasticsearch.bulk_index(products)

        for error in errors:
            action = next(iter(error.values()), {})
            self._record_index_failure("reindex", action.get("_id"), action.get("error"))

        logger.info(f"Reindexed {indexed} products ({len(errors)} failed)")
        return indexed

    def _record_index_failure(self, operation: str, product_id, error) -> None:
        with self._failures_lock:
            self.index_failures += 1
        logger.error(
            f"Search index drift: {operation} failed for product {product_id}: {error}",
            extra={
                "event": "search_index_drift",
                "operation": operation,
                "product_id": product_id,
            },
        )
