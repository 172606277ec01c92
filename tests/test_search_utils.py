import pytest

from models.Products import Product
from schemas.productManagement.search import SearchFilters, SearchResult, SearchSort, SortField, SortOrder
from services.search_utils import (
    ENGINE_TEXT_FIELDS,
    build_engine_query,
    build_engine_sort,
    build_relational_order,
    build_suggest_body,
    normalize_pagination,
    page_offset,
)


@pytest.mark.parametrize(
    "page, page_size, expected",
    [
        (1, 20, (1, 20)),
        (0, 10, (1, 10)),
        (-3, 10, (1, 10)),
        (2, 0, (2, 20)),
        (2, -5, (2, 20)),
        (None, None, (1, 20)),
    ],
)
def test_normalize_pagination(page, page_size, expected):
    assert normalize_pagination(page, page_size) == expected


def test_page_offset():
    assert page_offset(1, 20) == 0
    assert page_offset(3, 10) == 20


def test_count_pages_rounds_up():
    assert SearchResult.count_pages(45, 20) == 3
    assert SearchResult.count_pages(40, 20) == 2
    assert SearchResult.count_pages(0, 20) == 0


class TestSearchSort:
    def test_defaults_to_created_at_desc(self):
        sort = SearchSort()
        assert sort.field == SortField.CREATED_AT
        assert sort.order == SortOrder.DESC

    def test_unknown_field_falls_back_to_default(self):
        sort = SearchSort(field="colour", order="asc")
        assert sort.field == SortField.CREATED_AT
        assert sort.order == SortOrder.DESC

    def test_unknown_order_becomes_desc(self):
        sort = SearchSort(field="price", order="sideways")
        assert sort.field == SortField.PRICE
        assert sort.order == SortOrder.DESC

    def test_values_are_case_insensitive(self):
        sort = SearchSort(field="NAME", order="ASC")
        assert sort.field == SortField.NAME
        assert sort.order == SortOrder.ASC

    def test_none_values_use_defaults(self):
        sort = SearchSort(field=None, order=None)
        assert sort.field == SortField.CREATED_AT
        assert sort.order == SortOrder.DESC


class TestEngineQuery:
    def test_empty_filters_only_restrict_to_active(self):
        query = build_engine_query(SearchFilters())
        assert query == {"bool": {"must": [{"term": {"isActive": True}}]}}

    def test_text_query_is_weighted_and_fuzzy(self):
        query = build_engine_query(SearchFilters(search="  phone "))
        multi_match = query["bool"]["must"][1]["multi_match"]
        assert multi_match["query"] == "phone"
        assert multi_match["fields"] == ENGINE_TEXT_FIELDS
        assert multi_match["fields"][0] == "name^3"
        assert multi_match["fuzziness"] == "AUTO"

    def test_blank_text_adds_no_clause(self):
        query = build_engine_query(SearchFilters(search="   "))
        assert len(query["bool"]["must"]) == 1

    def test_all_filters(self):
        query = build_engine_query(SearchFilters(
            category_id="cat-1", min_price=10, max_price=50, in_stock=True,
        ))
        must = query["bool"]["must"]
        assert {"term": {"categoryId": "cat-1"}} in must
        assert {"range": {"price": {"gte": 10, "lte": 50}}} in must
        assert {"range": {"inventory": {"gt": 0}}} in must

    def test_inverted_price_range_is_passed_through(self):
        query = build_engine_query(SearchFilters(min_price=100, max_price=50))
        assert {"range": {"price": {"gte": 100, "lte": 50}}} in query["bool"]["must"]

    def test_single_price_bound(self):
        query = build_engine_query(SearchFilters(min_price=5))
        assert {"range": {"price": {"gte": 5}}} in query["bool"]["must"]

    def test_in_stock_false_does_not_filter(self):
        query = build_engine_query(SearchFilters(in_stock=False))
        assert {"range": {"inventory": {"gt": 0}}} not in query["bool"]["must"]


class TestEngineSort:
    @pytest.mark.parametrize(
        "field, engine_field",
        [
            ("name", "name.keyword"),
            ("price", "price"),
            ("created_at", "createdAt"),
            ("popularity", "popularity"),
        ],
    )
    def test_field_mapping(self, field, engine_field):
        sort = build_engine_sort(SearchSort(field=field, order="asc"))
        assert sort[0] == {engine_field: {"order": "asc"}}

    def test_ties_break_on_score_then_id(self):
        sort = build_engine_sort(SearchSort())
        assert sort[1] == {"_score": {"order": "desc"}}
        assert sort[2] == {"id": {"order": "asc"}}


def test_suggest_body():
    body = build_suggest_body("sma", 3)
    completion = body["product_suggest"]["completion"]
    assert body["product_suggest"]["prefix"] == "sma"
    assert completion["field"] == "name.suggest"
    assert completion["size"] == 3
    assert completion["skip_duplicates"] is True


class TestRelationalOrder:
    def test_price_asc_with_id_tie_break(self):
        order = build_relational_order(SearchSort(field="price", order="asc"))
        assert str(order[0]) == str(Product.price.asc())
        assert str(order[1]) == str(Product.id.asc())

    def test_popularity_is_not_supported_and_uses_default(self):
        order = build_relational_order(SearchSort(field="popularity", order="asc"))
        assert str(order[0]) == str(Product.created_at.desc())
