"""Unit and property tests for inspection tools."""

import pytest
from hypothesis import given, settings

from tableprep.models import Table
from tableprep.tools.inspection import (
    analyze_column,
    analyze_columns,
    detect_categorical_columns,
    get_high_cardinality_warnings,
)

from conftest import column_table, messy_tables


# ---------------------------------------------------------------------------
# Unit tests for analyze_columns
# ---------------------------------------------------------------------------


class TestNumericStatistics:
    """Descriptive statistics for numeric columns."""

    def test_known_values(self):
        stats = analyze_column(column_table("a", [1, 2, 3, None, 5]), "a")
        assert stats.type == "number"
        assert stats.total_count == 5
        assert stats.missing_count == 1
        assert stats.missing_percentage == pytest.approx(20.0)
        assert stats.unique_count == 4
        assert stats.mean == pytest.approx(2.75)
        assert stats.median == pytest.approx(2.5)
        assert stats.min == 1
        assert stats.max == 5
        assert stats.variance == pytest.approx(2.1875)
        assert stats.std_dev == pytest.approx(2.1875 ** 0.5)

    def test_floor_index_quartiles(self):
        stats = analyze_column(column_table("v", [10, 12, 11, 13, 100]), "v")
        assert stats.q1 == 11
        assert stats.q3 == 13

    def test_empty_strings_count_as_missing(self):
        stats = analyze_column(column_table("a", ["", "x", None]), "a")
        assert stats.missing_count == 2


class TestTypeInference:
    """Column type inference."""

    def test_dates(self):
        stats = analyze_column(column_table("d", ["2024-01-01", "2024-02-03", "soon"]), "d")
        assert stats.type == "date"

    def test_mixed(self):
        assert analyze_column(column_table("m", [1, "a"]), "m").type == "mixed"

    def test_boolean(self):
        assert analyze_column(column_table("b", [True, False]), "b").type == "boolean"

    def test_all_missing_is_string(self):
        stats = analyze_column(column_table("e", [None, ""]), "e")
        assert stats.type == "string"
        assert stats.mean is None


class TestMode:
    """Mode selection."""

    def test_placeholders_skipped(self):
        stats = analyze_column(column_table("c", ["unknown", "unknown", "a"]), "c")
        assert stats.mode == "a"

    def test_only_placeholders(self):
        stats = analyze_column(column_table("c", ["n/a", "n/a"]), "c")
        assert stats.mode == "n/a"

    def test_ties_go_to_first_seen(self):
        stats = analyze_column(column_table("c", ["b", "a", "a", "b"]), "c")
        assert stats.mode == "b"


class TestAnalyzeColumns:
    """Column selection and validation."""

    def test_order_preserved(self):
        table = Table.from_records([{"a": 1, "b": "x", "c": 2}])
        stats = analyze_columns(table, ["c", "a"])
        assert [s.name for s in stats] == ["c", "a"]

    def test_unknown_column(self):
        table = Table.from_records([{"a": 1}])
        with pytest.raises(ValueError, match="not found"):
            analyze_columns(table, ["zzz"])

    @given(table=messy_tables())
    @settings(max_examples=50, deadline=None)
    def test_pure_and_deterministic(self, table):
        before = [dict(row) for row in table.rows]
        assert analyze_columns(table) == analyze_columns(table)
        assert [dict(row) for row in table.rows] == before

    @given(table=messy_tables())
    @settings(max_examples=50, deadline=None)
    def test_counts_are_consistent(self, table):
        for stats in analyze_columns(table):
            assert stats.total_count == len(table)
            assert 0 <= stats.missing_count <= stats.total_count
            assert stats.unique_count <= stats.total_count - stats.missing_count
            if stats.type == "number":
                assert stats.min <= stats.q1 <= stats.q3 <= stats.max


# ---------------------------------------------------------------------------
# Categorical detection
# ---------------------------------------------------------------------------


class TestCategoricalDetection:
    """detect_categorical_columns and high-cardinality warnings."""

    def test_low_cardinality_strings(self):
        table = Table.from_records(
            [{"city": c, "n": i} for i, c in enumerate(["NYC", "LA", "NYC", "SF"])]
        )
        assert detect_categorical_columns(analyze_columns(table)) == ["city"]

    def test_high_cardinality(self):
        table = column_table("id", [f"id_{i}" for i in range(120)])
        stats = analyze_columns(table)
        assert detect_categorical_columns(stats) == []
        assert get_high_cardinality_warnings(stats) == [{"column": "id", "cardinality": 120}]
