"""Tests for the listing query builder."""

import itertools
from datetime import datetime

import pytest

from jobboard.core.database import DocumentQuery
from jobboard.services.jobs import JOB_FIELD_TYPES
from jobboard.services.query_features import (
    BOOLEAN,
    DATE,
    DEFAULT_PROJECTION,
    DEFAULT_SORT,
    MAX_PAGE,
    MAX_PAGE_SIZE,
    NUMBER,
    RESERVED_PARAMS,
    QueryFeatureBuilder,
    build_query,
)

STEPS = ("filter", "sort", "limit_fields", "search", "paginate")

FIELD_TYPES = {
    "age": NUMBER,
    "salaryRange.min": NUMBER,
    "location.remote": BOOLEAN,
    "applicationDeadline": DATE,
}


def run_steps(params, order, base_filter=None):
    builder = QueryFeatureBuilder(params, base_filter=base_filter, field_types=JOB_FIELD_TYPES)
    for step in order:
        getattr(builder, step)()
    return builder.build()


def typed_filter(params):
    return QueryFeatureBuilder(params, field_types=FIELD_TYPES).filter().build().query.filter


class TestFilter:
    """Tests for turning params into a filter."""

    def test_reserved_keys_never_reach_filter(self):
        """page, sort, limit, fields and q are never treated as fields."""
        params = {
            "page": "2",
            "sort": "title",
            "limit": "5",
            "fields": "title",
            "q": "nurse",
            "jobType": "full-time",
        }
        built = QueryFeatureBuilder(params).filter().build()

        assert built.query.filter == {"jobType": "full-time"}
        assert not RESERVED_PARAMS & built.query.filter.keys()

    def test_reserved_keys_with_operators_are_skipped(self):
        """page[gt]=1 must not smuggle a reserved key in as a field."""
        built = QueryFeatureBuilder({"page[gt]": "1", "limit[lte]": "3"}).filter().build()

        assert built.query.filter == {}

    def test_comparison_operators(self):
        """field[op]=value becomes a comparison on the field."""
        assert typed_filter({"age[gt]": "10"}) == {"age": {"$gt": 10}}

    def test_operators_on_same_field_merge(self):
        """A range written as two params ends up on one field."""
        params = {"salaryRange.min[gte]": "50000", "salaryRange.min[lt]": "90000.5"}

        assert typed_filter(params) == {"salaryRange.min": {"$gte": 50000, "$lt": 90000.5}}

    def test_nested_operator_mapping(self):
        """Params that arrive already nested are accepted too."""
        assert typed_filter({"age": {"lte": "30", "regex": ".*"}}) == {"age": {"$lte": 30}}

    def test_untyped_fields_stay_strings(self):
        """A numeric-looking title is still a title."""
        built = QueryFeatureBuilder({"title": "1984", "zip": "02134"}).filter().build()

        assert built.query.filter == {"title": "1984", "zip": "02134"}

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("TRUE", True), ("1", True), ("false", False), ("no", False)],
    )
    def test_boolean_fields(self, raw, expected):
        assert typed_filter({"location.remote": raw}) == {"location.remote": expected}

    def test_date_fields(self):
        params = {
            "applicationDeadline[gte]": "2026-01-01",
            "applicationDeadline[lt]": "2026-02-01T12:00:00+02:00",
        }

        assert typed_filter(params) == {
            "applicationDeadline": {
                "$gte": datetime(2026, 1, 1),
                "$lt": datetime(2026, 2, 1, 10, 0),
            }
        }

    @pytest.mark.parametrize(
        "params",
        [
            {"age[gt]": "ten"},
            {"location.remote": "maybe"},
            {"applicationDeadline[gte]": "next week"},
            {"age": {"gt": "1e400"}},
        ],
    )
    def test_uncastable_values_drop_the_condition(self, params):
        assert typed_filter({**params, "jobType": "full-time"}) == {"jobType": "full-time"}

    def test_plain_values_are_exact_match(self):
        built = QueryFeatureBuilder({"jobType": "full-time"}).filter().build()

        assert built.query.filter == {"jobType": "full-time"}

    def test_operator_keys_are_dropped(self):
        """Keys starting with $ cannot inject storage operators."""
        params = {"$where": "sleep(1000)", "$or[gt]": "1", "title": "Nurse"}
        built = QueryFeatureBuilder(params).filter().build()

        assert built.query.filter == {"title": "Nurse"}

    def test_unknown_bracket_operator_is_literal(self):
        built = QueryFeatureBuilder({"age[regex]": "1"}).filter().build()

        assert built.query.filter == {"age[regex]": "1"}


class TestSort:
    """Tests for sort parsing."""

    def test_mixed_directions(self):
        built = QueryFeatureBuilder({"sort": "-createdAt,title"}).sort().build()

        assert built.query.sort == [("createdAt", -1), ("title", 1)]

    def test_default_sort(self):
        built = QueryFeatureBuilder({}).sort().build()

        assert built.query.sort == DEFAULT_SORT

    @pytest.mark.parametrize("raw", ["", ",", " , - ,", "$natural"])
    def test_malformed_sort_falls_back(self, raw):
        built = QueryFeatureBuilder({"sort": raw}).sort().build()

        assert built.query.sort == DEFAULT_SORT

    def test_plus_prefix_is_ascending(self):
        built = QueryFeatureBuilder({"sort": "+salaryRange.min"}).sort().build()

        assert built.query.sort == [("salaryRange.min", 1)]


class TestLimitFields:
    """Tests for field projection."""

    def test_inclusion_projection(self):
        built = QueryFeatureBuilder({"fields": "title, companyName"}).limit_fields().build()

        assert built.query.projection == {"title": 1, "companyName": 1}

    def test_default_excludes_version_field(self):
        built = QueryFeatureBuilder({}).limit_fields().build()

        assert built.query.projection == DEFAULT_PROJECTION

    def test_exclusions_and_operators_are_ignored(self):
        built = QueryFeatureBuilder({"fields": "-passwordHash,$where"}).limit_fields().build()

        assert built.query.projection == DEFAULT_PROJECTION


class TestSearch:
    """Tests for text search."""

    def test_search_is_anded_with_filter(self):
        """q adds an OR across text fields without replacing the filter."""
        built = build_query({"q": "nurse", "jobType": "full-time"})

        assert built.query.filter == {
            "$and": [
                {"jobType": "full-time"},
                {
                    "$or": [
                        {"title": {"$regex": "nurse", "$options": "i"}},
                        {"description": {"$regex": "nurse", "$options": "i"}},
                        {"skills": {"$regex": "nurse", "$options": "i"}},
                    ]
                },
            ]
        }

    def test_search_term_is_escaped(self):
        built = QueryFeatureBuilder({"q": "c++ (senior)"}).search().build()

        assert built.query.filter["$or"][0]["title"]["$regex"] == r"c\+\+\ \(senior\)"

    def test_blank_search_adds_nothing(self):
        built = QueryFeatureBuilder({"q": "   "}).search().build()

        assert built.query.filter == {}

    def test_base_filter_is_always_applied(self):
        built = build_query({"status": "pending"}, base_filter={"status": "approved"})

        assert built.query.filter == {"$and": [{"status": "approved"}, {"status": "pending"}]}


class TestPaginate:
    """Tests for page/limit handling."""

    def test_defaults(self):
        built = QueryFeatureBuilder({}).paginate().build()

        assert (built.page, built.limit, built.query.skip, built.query.limit) == (1, 10, 0, 10)

    def test_skip_from_page_and_limit(self):
        built = QueryFeatureBuilder({"page": "3", "limit": "20"}).paginate().build()

        assert built.query.skip == 40
        assert built.query.limit == 20

    @pytest.mark.parametrize("page", ["0", "-1", "abc", "1.5", ""])
    def test_invalid_page_falls_back_to_first(self, page):
        built = QueryFeatureBuilder({"page": page}).paginate().build()

        assert built.page == 1
        assert built.query.skip == 0

    @pytest.mark.parametrize("limit", ["0", "-5", "ten"])
    def test_invalid_limit_falls_back_to_default(self, limit):
        built = QueryFeatureBuilder({"limit": limit}).paginate().build()

        assert built.limit == 10

    def test_limit_is_capped(self):
        built = QueryFeatureBuilder({"limit": "100000"}).paginate().build()

        assert built.limit == MAX_PAGE_SIZE

    def test_huge_page_is_clamped(self):
        """skip has to fit the storage wire format's 64-bit integers."""
        built = QueryFeatureBuilder({"page": "9" * 30, "limit": "100"}).paginate().build()

        assert built.page == MAX_PAGE
        assert built.query.skip == (MAX_PAGE - 1) * MAX_PAGE_SIZE
        assert built.query.skip < 2**63

    def test_page_too_long_to_parse_falls_back(self):
        built = QueryFeatureBuilder({"page": "9" * 5000}).paginate().build()

        assert built.page == 1


class TestBuild:
    """Tests for composing the final query."""

    def test_order_of_steps_does_not_matter(self):
        params = {
            "q": "nurse",
            "jobType": "full-time",
            "salaryRange.min[gte]": "50000",
            "sort": "-createdAt,title",
            "fields": "title,skills",
            "page": "2",
            "limit": "5",
        }
        results = [
            run_steps(params, order, base_filter={"status": "approved"})
            for order in itertools.permutations(STEPS)
        ]

        assert len(results) == 120
        assert all(result == results[0] for result in results)

    def test_unbuilt_steps_contribute_defaults(self):
        built = QueryFeatureBuilder({"sort": "title", "page": "4"}).build()

        assert built.query == DocumentQuery(
            filter={}, sort=DEFAULT_SORT, projection=DEFAULT_PROJECTION, skip=0, limit=10
        )
        assert built.page == 1

    def test_empty_params(self):
        built = build_query({})

        assert built.query.filter == {}
        assert built.query.sort == DEFAULT_SORT
        assert built.query.projection == DEFAULT_PROJECTION
