# schemas/search.py
from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator
from typing import Any, List, Optional
from datetime import datetime
from enum import Enum
import math


class SortField(str, Enum):
    NAME = "name"
    PRICE = "price"
    CREATED_AT = "created_at"
    POPULARITY = "popularity"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SearchFilters(BaseModel):
    category_id: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: Optional[bool] = None
    search: Optional[str] = None


class SearchSort(BaseModel):
    """Requested ordering. Unknown fields degrade to created_at desc."""
    field: SortField = SortField.CREATED_AT
    order: SortOrder = SortOrder.DESC

    @model_validator(mode="before")
    @classmethod
    def _fallback_to_default(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        field = data.get("field")
        order = data.get("order")
        if isinstance(field, Enum):
            field = field.value
        if isinstance(order, Enum):
            order = order.value
        field = (field or SortField.CREATED_AT.value).lower()
        order = (order or SortOrder.DESC.value).lower()
        if field not in SortField._value2member_map_:
            return {"field": SortField.CREATED_AT, "order": SortOrder.DESC}
        if order not in SortOrder._value2member_map_:
            order = SortOrder.DESC.value
        return {"field": field, "order": order}


class CatalogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str = ""
    price: float
    compare_at_price: Optional[float] = None
    sku: str = ""
    inventory: int = 0
    is_active: bool = True
    category_id: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    popularity: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Omitted from the payload when not requested or not available
OPTIONAL_RESULT_FIELDS = ("suggestions", "facets", "degraded")


def _drop_none(data: Any, fields) -> Any:
    if isinstance(data, dict):
        for name in fields:
            if data.get(name) is None:
                data.pop(name, None)
    return data


class CategoryFacet(BaseModel):
    id: str
    name: str
    count: int


class PriceRangeFacet(BaseModel):
    range: str
    min: float
    max: float
    count: int


class FacetSummary(BaseModel):
    categories: List[CategoryFacet] = Field(default_factory=list)
    price_ranges: List[PriceRangeFacet] = Field(default_factory=list)


class SearchResult(BaseModel):
    products: List[CatalogEntry] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int
    total_pages: int = 0
    suggestions: Optional[List[str]] = None
    facets: Optional[FacetSummary] = None
    degraded: Optional[bool] = None

    @staticmethod
    def count_pages(total: int, page_size: int) -> int:
        return math.ceil(total / page_size) if page_size > 0 else 0

    @model_serializer(mode="wrap")
    def _omit_absent(self, handler):
        return _drop_none(handler(self), OPTIONAL_RESULT_FIELDS)


class SuggestionResponse(BaseModel):
    suggestions: List[str]
    degraded: Optional[bool] = None

    @model_serializer(mode="wrap")
    def _omit_absent(self, handler):
        return _drop_none(handler(self), ("degraded",))


class SearchHealthResponse(BaseModel):
    engine: str
    cache_available: bool
    index_failures: int


class ReindexResponse(BaseModel):
    message: str
    indexed: int
