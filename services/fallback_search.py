# services/fallback_search.py
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.Products import Product
from schemas.productManagement.search import CatalogEntry, SearchFilters, SearchResult, SearchSort
from services.exceptions import SearchQueryError
from services.search_utils import (
    build_relational_conditions,
    build_relational_order,
    page_offset,
)

BACKEND = "database"


def fallback_search_products(
    db: Session,
    filters: SearchFilters,
    sort: SearchSort,
    page: int,
    page_size: int,
) -> SearchResult:
    """
    Search products directly in the relational store.

    Capability subset compared to the search engine: substring matching on
    name/description only, no fuzziness, no relevance ranking, no facets, and
    sorting limited to name, price and created_at.
    """
    conditions = build_relational_conditions(filters)

    try:
        total = db.execute(
            select(func.count()).select_from(Product).where(*conditions)
        ).scalar_one()

        stmt = (
            select(Product)
            .where(*conditions)
            .order_by(*build_relational_order(sort))
            .offset(page_offset(page, page_size))
            .limit(page_size)
        )
        products = db.execute(stmt).scalars().all()
    except SQLAlchemyError as e:
        raise SearchQueryError(BACKEND, str(e))

    return SearchResult(
        products=[CatalogEntry.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=SearchResult.count_pages(total, page_size),
    )


def fallback_suggestions(db: Session, prefix: str, size: int) -> List[str]:
    stmt = (
        select(Product.name)
        .where(
            Product.is_active.is_(True),
            Product.name.istartswith(prefix, autoescape=True),
        )
        .order_by(Product.name.asc())
        .limit(size)
    )
    try:
        return list(db.execute(stmt).scalars().all())
    except SQLAlchemyError as e:
        raise SearchQueryError(BACKEND, str(e))
