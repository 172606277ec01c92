# services/search_utils.py
"""
Query translation for the two search backends.

A normalized (filters, sort, page, page_size) request is turned into either an
Elasticsearch query body or a list of SQLAlchemy predicates and ORDER BY
clauses. Both translations always restrict results to active products and end
with an id tie-break so repeated calls return the same ordering.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_

from config import DEFAULT_PAGE_SIZE
from models.Products import Product
from schemas.productManagement.search import SearchFilters, SearchSort, SortField, SortOrder

# Weighted multi-field match: name highest, then description, category name, sku
ENGINE_TEXT_FIELDS = ["name^3", "description^2", "categoryName", "sku"]

ENGINE_SORT_FIELDS = {
    SortField.NAME: "name.keyword",
    SortField.PRICE: "price",
    SortField.CREATED_AT: "createdAt",
    SortField.POPULARITY: "popularity",
}

# popularity has no relational column worth sorting on
RELATIONAL_SORT_COLUMNS = {
    SortField.NAME: Product.name,
    SortField.PRICE: Product.price,
    SortField.CREATED_AT: Product.created_at,
}

SUGGEST_NAME = "product_suggest"
SUGGEST_FIELD = "name.suggest"


def normalize_pagination(page: int, page_size: int) -> Tuple[int, int]:
    if page is None or page < 1:
        page = 1
    if page_size is None or page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    return page, page_size


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size


def clean_search_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return value.strip()


# ---------------- ENGINE ----------------
def build_engine_query(filters: SearchFilters) -> Dict[str, Any]:
    must: List[Dict[str, Any]] = [
        {"term": {"isActive": True}},
    ]

    text = clean_search_text(filters.search)
    if text:
        must.append({
            "multi_match": {
                "query": text,
                "fields": ENGINE_TEXT_FIELDS,
                "type": "best_fields",
                "fuzziness": "AUTO",
            }
        })

    if filters.category_id:
        must.append({"term": {"categoryId": filters.category_id}})

    if filters.min_price is not None or filters.max_price is not None:
        price_range = {}
        if filters.min_price is not None:
            price_range["gte"] = filters.min_price
        if filters.max_price is not None:
            price_range["lte"] = filters.max_price
        must.append({"range": {"price": price_range}})

    if filters.in_stock:
        must.append({"range": {"inventory": {"gt": 0}}})

    return {"bool": {"must": must}}


def build_engine_sort(sort: SearchSort) -> List[Dict[str, Any]]:
    sort_field = ENGINE_SORT_FIELDS.get(sort.field, "createdAt")
    return [
        {sort_field: {"order": sort.order.value}},
        {"_score": {"order": "desc"}},  # equal keys order by relevance
        {"id": {"order": "asc"}},
    ]


def build_suggest_body(prefix: str, size: int) -> Dict[str, Any]:
    return {
        SUGGEST_NAME: {
            "prefix": prefix,
            "completion": {
                "field": SUGGEST_FIELD,
                "size": size,
                "skip_duplicates": True,
            },
        }
    }


# ---------------- RELATIONAL ----------------
def build_relational_conditions(filters: SearchFilters) -> list:
    conditions = [Product.is_active.is_(True)]

    if filters.category_id:
        conditions.append(Product.category_id == filters.category_id)
    if filters.min_price is not None:
        conditions.append(Product.price >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Product.price <= filters.max_price)
    if filters.in_stock:
        conditions.append(Product.inventory > 0)

    text = clean_search_text(filters.search)
    if text:
        conditions.append(or_(
            Product.name.icontains(text, autoescape=True),
            Product.description.icontains(text, autoescape=True),
        ))

    return conditions


def build_relational_order(sort: SearchSort) -> list:
    column = RELATIONAL_SORT_COLUMNS.get(sort.field)
    if column is None:
        column, order = Product.created_at, SortOrder.DESC
    else:
        order = sort.order

    primary = column.desc() if order == SortOrder.DESC else column.asc()
    return [primary, Product.id.asc()]
