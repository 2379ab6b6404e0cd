"""Tests for QueryResult and the post-fetch result operations."""

import polars as pl
import pytest

from conftest import make_result
from delta_query.core.query.results import (
    QueryResult,
    aggregate_by_column,
    empty_result,
    filter_result,
    join,
    text_search,
)
from delta_query.errors import (
    FilterError,
    InvalidDateError,
    NoMatchingColumnsError,
    UnknownColumnError,
)


@pytest.fixture
def projects():
    return make_result(
        {
            "project_id": [1, 2, 3],
            "name": ["Tower", "Bridge", "Annex"],
            "square_feet": [120000, 30000, 75000],
        },
        files_processed=2,
        total_files=3,
    )


@pytest.fixture
def contracts():
    return make_result(
        {"project_id": [1, 3, 3], "amount": [10.0, 5.0, 7.5]},
        files_processed=1,
        total_files=1,
    )


class TestQueryResult:
    """Tests for the QueryResult accessors."""

    def test_accessors(self, projects):
        assert projects.columns == ["project_id", "name", "square_feet"]
        assert projects.count() == 3
        assert not projects.is_empty()
        assert projects.first() == {"project_id": 1, "name": "Tower", "square_feet": 120000}
        assert projects.to_rows()[2]["name"] == "Annex"

    def test_sum(self, projects):
        assert projects.sum("square_feet") == 225000
        assert projects.sum("missing") == 0

    def test_empty_result(self):
        r = empty_result(["a", "b"])
        assert r.columns == ["a", "b"]
        assert r.is_empty()
        assert r.first() is None
        assert (r.files_processed, r.total_files) == (0, 0)

    def test_empty_result_without_columns(self):
        assert empty_result().columns == []

    def test_is_frozen(self, projects):
        with pytest.raises(AttributeError):
            projects.files_processed = 9  # type: ignore[misc]


class TestFilterResult:
    """Tests for filter_result."""

    def test_narrows_rows_and_keeps_counters(self, projects):
        out = filter_result(projects, ["square_feet > 50000"])
        assert out.table["name"].to_list() == ["Tower", "Annex"]
        assert (out.files_processed, out.total_files) == (2, 3)

    def test_input_is_not_modified(self, projects):
        filter_result(projects, ["project_id = 1"])
        assert projects.count() == 3

    def test_no_predicates_returns_same_result(self, projects):
        assert filter_result(projects, []) is projects

    def test_errors_propagate(self, projects):
        with pytest.raises(UnknownColumnError):
            filter_result(projects, ["budget > 1"])
        with pytest.raises(FilterError):
            filter_result(projects, ["name ~ 'x'"])

    def test_invalid_date_on_date_column(self):
        r = make_result({"d": pl.Series(["2024-01-01"]).str.to_date()})
        with pytest.raises(InvalidDateError):
            filter_result(r, ["d = '01/02/2024'"])

    def test_idempotent(self, projects):
        """Test filter(filter(r, P), P) == filter(r, P)."""
        preds = ["square_feet >= 30000", "name != 'Bridge'"]
        once = filter_result(projects, preds)
        twice = filter_result(once, preds)
        assert twice.table.equals(once.table)

    def test_method_form(self, projects):
        assert projects.filter(["project_id = 2"]).to_rows() == [
            {"project_id": 2, "name": "Bridge", "square_feet": 30000}
        ]


class TestTextSearch:
    """Tests for text_search on results."""

    def test_search(self, projects):
        out = text_search(projects, "an", ["name"])
        assert out.table["name"].to_list() == ["Annex"]

    def test_empty_text_is_noop(self, projects):
        assert text_search(projects, "", ["missing"]) is projects

    def test_no_matching_columns(self, projects):
        with pytest.raises(NoMatchingColumnsError):
            text_search(projects, "x", ["missing"])

    def test_zero_matches_is_not_an_error(self, projects):
        out = projects.text_search("nothing like this", ["name"])
        assert out.is_empty()
        assert out.columns == projects.columns


class TestJoin:
    """Tests for join on results."""

    def test_join_filter_then_aggregate(self, projects, contracts):
        """Test the typical post-fetch flow: join, narrow, then count."""
        joined = join(projects, contracts, on="project_id", how="inner")
        assert joined.count() == 3
        big = filter_result(joined, ["square_feet > 50000"])
        assert big.count() == 3
        assert aggregate_by_column(big, "name") == [
            {"value": "Annex", "count": 2},
            {"value": "Tower", "count": 1},
        ]

    @pytest.mark.parametrize("how", ["inner", "left", "right", "outer", "cross"])
    def test_counts_add_up(self, projects, contracts, how):
        """Test that file counters are the sums of both inputs for every join kind."""
        out = join(projects, contracts, on="project_id", how=how)
        assert out.files_processed == projects.files_processed + contracts.files_processed
        assert out.total_files == projects.total_files + contracts.total_files

    def test_join_with_empty_result(self, projects):
        out = projects.join(empty_result(["project_id"]), on="project_id")
        assert out.count() == 3
        assert out.files_processed == 2

    def test_returns_query_result(self, projects, contracts):
        assert isinstance(projects.join(contracts, on="project_id"), QueryResult)


def test_aggregate_by_column_method():
    r = make_result({"category": ["a", "b", "a", "a", "b"]})
    assert r.aggregate_by_column("category") == [
        {"value": "a", "count": 3},
        {"value": "b", "count": 2},
    ]
