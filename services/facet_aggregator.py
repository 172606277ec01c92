# services/facet_aggregator.py
import logging
from typing import Any, Dict, List

from schemas.productManagement.search import CategoryFacet, FacetSummary, PriceRangeFacet

logger = logging.getLogger(__name__)

CATEGORY_AGG = "categories"
PRICE_AGG = "price_ranges"
CATEGORY_BUCKETS = 20

# Fixed price breakpoints; the open-ended bucket reports OPEN_RANGE_MAX as its max
PRICE_RANGES: List[Dict[str, Any]] = [
    {"key": "0-25", "to": 25},
    {"key": "25-50", "from": 25, "to": 50},
    {"key": "50-100", "from": 50, "to": 100},
    {"key": "100-250", "from": 100, "to": 250},
    {"key": "250+", "from": 250},
]
OPEN_RANGE_MAX = 999999.0


def build_aggregations() -> Dict[str, Any]:
    return {
        CATEGORY_AGG: {
            "terms": {"field": "categoryId", "size": CATEGORY_BUCKETS},
        },
        PRICE_AGG: {
            "range": {"field": "price", "ranges": PRICE_RANGES},
        },
    }


def parse_facets(aggregations: Any) -> FacetSummary:
    """
    Turn an aggregation response into a FacetSummary.
    Facets are best-effort: anything unparseable yields an empty summary.
    """
    try:
        return FacetSummary(
            categories=_parse_category_buckets(aggregations.get(CATEGORY_AGG, {})),
            price_ranges=_parse_price_buckets(aggregations.get(PRICE_AGG, {})),
        )
    except Exception as e:
        logger.warning(f"Failed to parse facet aggregations: {e}")
        return FacetSummary()


def _parse_category_buckets(agg: Dict[str, Any]) -> List[CategoryFacet]:
    facets = []
    for bucket in agg.get("buckets", []):
        key = bucket.get("key")
        count = bucket.get("doc_count")
        if key is None or count is None:
            continue
        # TODO: resolve display names against the categories table once the facet contract settles
        facets.append(CategoryFacet(id=str(key), name=str(key), count=int(count)))
    return facets


def _parse_price_buckets(agg: Dict[str, Any]) -> List[PriceRangeFacet]:
    facets = []
    for bucket in agg.get("buckets", []):
        key = bucket.get("key")
        count = bucket.get("doc_count")
        if key is None or count is None:
            continue
        facets.append(PriceRangeFacet(
            range=str(key),
            min=float(bucket.get("from", 0.0)),
            max=float(bucket.get("to", OPEN_RANGE_MAX)),
            count=int(count),
        ))
    return facets
