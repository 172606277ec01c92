# services/elasticsearch_service.py
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError, helpers

from config import ELASTICSEARCH_TIMEOUT, SEARCH_INDEX_NAME
from models.Products import Product
from schemas.productManagement.search import CatalogEntry, SearchFilters, SearchResult, SearchSort
from services.exceptions import SearchQueryError
from services.facet_aggregator import build_aggregations, parse_facets
from services.search_utils import (
    SUGGEST_NAME,
    build_engine_query,
    build_engine_sort,
    build_suggest_body,
    page_offset,
)

logger = logging.getLogger(__name__)

BACKEND = "elasticsearch"

INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "keyword"},
        "name": {
            "type": "text",
            "analyzer": "standard",
            "fields": {
                "keyword": {"type": "keyword"},
                "suggest": {"type": "completion", "analyzer": "simple"},
            },
        },
        "description": {"type": "text", "analyzer": "standard"},
        "price": {"type": "float"},
        "compareAtPrice": {"type": "float"},
        "sku": {"type": "keyword"},
        "inventory": {"type": "integer"},
        "isActive": {"type": "boolean"},
        "categoryId": {"type": "keyword"},
        "categoryName": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "images": {"type": "keyword"},
        "createdAt": {"type": "date"},
        "updatedAt": {"type": "date"},
        "popularity": {"type": "float"},
    }
}

INDEX_SETTINGS = {
    "analysis": {
        "analyzer": {
            "product_analyzer": {
                "type": "custom",
                "tokenizer": "standard",
                "filter": ["lowercase", "stop", "snowball"],
            }
        }
    }
}


def _body(response: Any) -> Dict[str, Any]:
    # ObjectApiResponse wraps the decoded JSON in .body
    return getattr(response, "body", response)


def product_to_document(product: Product) -> Dict[str, Any]:
    doc = {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "compareAtPrice": product.compare_at_price,
        "sku": product.sku,
        "inventory": product.inventory,
        "isActive": product.is_active,
        "categoryId": product.category_id,
        "images": list(product.images or []),
        "createdAt": product.created_at.isoformat() if product.created_at else None,
        "updatedAt": product.updated_at.isoformat() if product.updated_at else None,
        "popularity": product.popularity or 0.0,
    }
    if product.category is not None:
        doc["categoryName"] = product.category.name
    return doc


def source_to_entry(source: Dict[str, Any]) -> CatalogEntry:
    return CatalogEntry(
        id=str(source["id"]),
        name=source.get("name", ""),
        description=source.get("description") or "",
        price=source.get("price", 0.0),
        compare_at_price=source.get("compareAtPrice"),
        sku=source.get("sku") or "",
        inventory=source.get("inventory") or 0,
        is_active=source.get("isActive", True),
        category_id=source.get("categoryId"),
        images=[img for img in source.get("images") or [] if isinstance(img, str)],
        popularity=source.get("popularity") or 0.0,
        created_at=source.get("createdAt"),
        updated_at=source.get("updatedAt"),
    )


class ElasticsearchService:
    """Thin gateway over the product index"""

    def __init__(self, client: Elasticsearch, index_name: str = SEARCH_INDEX_NAME):
        self.client = client
        self.index_name = index_name

    @classmethod
    def from_url(cls, url: str, timeout: float = ELASTICSEARCH_TIMEOUT) -> "ElasticsearchService":
        return cls(Elasticsearch(url, request_timeout=timeout))

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except (TransportError, ApiError) as e:
            logger.warning(f"Elasticsearch ping failed: {e}")
            return False

    def ensure_index(self) -> None:
        """Create the product index with its mapping if it does not exist yet."""
        if self.client.indices.exists(index=self.index_name):
            return
        self.client.indices.create(
            index=self.index_name,
            mappings=INDEX_MAPPINGS,
            settings=INDEX_SETTINGS,
        )
        logger.info(f"Created search index '{self.index_name}'")

    def index_product(self, product: Product) -> None:
        self.client.index(
            index=self.index_name,
            id=product.id,
            document=product_to_document(product),
            refresh=True,
        )

    def delete_product(self, product_id: str) -> None:
        try:
            self.client.delete(index=self.index_name, id=product_id, refresh=True)
        except NotFoundError:
            # Already absent from the index
            pass

    def bulk_index(self, products: Iterable[Product]) -> Tuple[int, list]:
        actions = (
            {"_index": self.index_name, "_id": product.id, "_source": product_to_document(product)}
            for product in products
        )
        try:
            return helpers.bulk(self.client, actions, raise_on_error=False, refresh=True)
        except (ApiError, TransportError) as e:
            raise SearchQueryError(BACKEND, str(e))

    def search_products(
        self,
        filters: SearchFilters,
        sort: SearchSort,
        page: int,
        page_size: int,
        include_facets: bool,
    ) -> SearchResult:
        params: Dict[str, Any] = {
            "index": self.index_name,
            "query": build_engine_query(filters),
            "sort": build_engine_sort(sort),
            "from_": page_offset(page, page_size),
            "size": page_size,
            "track_total_hits": True,
        }
        if include_facets:
            params["aggs"] = build_aggregations()

        try:
            response = self.client.search(**params)
        except (ApiError, TransportError) as e:
            raise SearchQueryError(BACKEND, str(e))

        return self.parse_search_response(_body(response), page, page_size, include_facets)

    def parse_search_response(
        self,
        result: Dict[str, Any],
        page: int,
        page_size: int,
        include_facets: bool,
    ) -> SearchResult:
        try:
            hits = result["hits"]
            total = int(hits["total"]["value"])
            hit_list = hits["hits"]
        except (KeyError, TypeError, ValueError):
            raise SearchQueryError(BACKEND, "invalid search response format")

        products: List[CatalogEntry] = []
        for hit in hit_list:
            source = hit.get("_source") if isinstance(hit, dict) else None
            if not source:
                continue
            try:
                products.append(source_to_entry(source))
            except Exception as e:
                logger.error(f"Error mapping search hit {hit.get('_id')}: {e}")

        search_result = SearchResult(
            products=products,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=SearchResult.count_pages(total, page_size),
        )
        if include_facets:
            search_result.facets = parse_facets(result.get("aggregations") or {})
        return search_result

    def get_suggestions(self, prefix: str, size: int) -> List[str]:
        try:
            response = self.client.search(
                index=self.index_name,
                suggest=build_suggest_body(prefix, size),
                size=0,
            )
        except (ApiError, TransportError) as e:
            raise SearchQueryError(BACKEND, str(e))
        return parse_suggestions(_body(response))


def parse_suggestions(result: Any) -> List[str]:
    """Extract completion texts; a malformed response yields no suggestions."""
    try:
        entries = result.get("suggest", {}).get(SUGGEST_NAME) or []
        if not entries:
            return []
        options = entries[0].get("options") or []
        return [option["text"] for option in options if isinstance(option.get("text"), str)]
    except (AttributeError, KeyError, TypeError, IndexError) as e:
        logger.warning(f"Failed to parse suggestion response: {e}")
        return []
