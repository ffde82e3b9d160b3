"""Unit and property tests for scaling and transform tools."""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tableprep.models import Table
from tableprep.tools.scaling import (
    apply_scaler,
    apply_transform,
    box_cox_transform,
    inverse_scale,
    log_transform,
    min_max_scale,
    numeric_columns,
    robust_scale,
    scale_columns,
    sqrt_transform,
    standard_scale,
)

from conftest import column_table, numeric_values


# ---------------------------------------------------------------------------
# Scalers
# ---------------------------------------------------------------------------


class TestMinMaxScale:
    """Scaling into a feature range."""

    def test_basic(self):
        table = column_table("v", [0, 5, 10])
        result, scaler, logs = min_max_scale(table, ["v"])
        assert result.column_values("v") == [0.0, 0.5, 1.0]
        assert scaler.params == {"v": {"min": 0.0, "max": 10.0}}
        assert logs[0].details == "Scaled 1 columns to range [0, 1]"

    def test_custom_range(self):
        table = column_table("v", [0, 5, 10])
        result, _, _ = min_max_scale(table, ["v"], feature_range=(-1, 1))
        assert result.column_values("v") == [-1.0, 0.0, 1.0]

    def test_nulls_preserved(self):
        table = column_table("v", [0, None, "", 10])
        result, _, _ = min_max_scale(table, ["v"])
        assert result.column_values("v") == [0.0, None, None, 1.0]

    def test_constant_column(self):
        table = column_table("v", [3, 3])
        result, _, _ = min_max_scale(table, ["v"])
        assert result.column_values("v") == [0.0, 0.0]


class TestStandardScale:
    """Z-score scaling with population std."""

    def test_basic(self):
        table = column_table("v", [1, 2, 3])
        result, scaler, logs = standard_scale(table, ["v"])
        std = math.sqrt(2 / 3)
        assert result.column_values("v") == pytest.approx([-1 / std, 0.0, 1 / std])
        assert scaler.method == "standard"
        assert logs[0].operation == "Standard Scaling"

    def test_zero_std_counts_as_one(self):
        table = column_table("v", [5, 5])
        result, scaler, _ = standard_scale(table, ["v"])
        assert result.column_values("v") == [0.0, 0.0]
        assert scaler.params["v"]["std"] == 1.0

    def test_excluded_columns_untouched(self):
        table = Table.from_records([{"x": 1, "y": 10}, {"x": 3, "y": 20}])
        result, scaler, _ = standard_scale(table, ["x", "y"], exclude_columns=["y"])
        assert result.column_values("y") == [10, 20]
        assert scaler.columns == ["x"]


class TestRobustScale:
    """Median/IQR scaling."""

    def test_basic(self):
        table = column_table("v", [1, 2, 3, 4, 100])
        result, scaler, _ = robust_scale(table, ["v"])
        assert scaler.params["v"] == {"median": 3.0, "iqr": 2.0}
        assert result.column_values("v")[2] == 0.0


class TestScaleColumns:
    """Dispatch, replay and inversion."""

    def test_invalid_method(self):
        with pytest.raises(ValueError, match="Invalid scaling method"):
            scale_columns(column_table("v", [1]), ["v"], "quantile")

    def test_unknown_column(self):
        with pytest.raises(ValueError, match="not found"):
            scale_columns(column_table("v", [1]), ["w"])

    def test_non_numeric_column_skipped(self):
        table = column_table("s", ["a", "b"])
        result, scaler, logs = scale_columns(table, ["s"])
        assert result is table
        assert scaler.columns == []
        assert logs == []

    def test_apply_scaler_to_new_table(self):
        _, scaler, _ = min_max_scale(column_table("v", [0, 10]), ["v"])
        replayed = apply_scaler(column_table("v", [5, 20]), scaler)
        assert replayed.column_values("v") == [0.5, 2.0]

    @given(
        values=numeric_values(allow_none=True),
        method=st.sampled_from(["standard", "minmax", "robust"]),
    )
    @settings(max_examples=60, deadline=None)
    def test_inverse_restores_values(self, values, method):
        table = column_table("v", values)
        scaled, scaler, _ = scale_columns(table, ["v"], method)
        restored = inverse_scale(scaled, scaler)
        for original, back in zip(values, restored.column_values("v")):
            if original is None:
                assert back is None
            else:
                assert back == pytest.approx(original, rel=1e-6, abs=1e-6)

    @given(values=numeric_values(min_size=2, allow_none=False))
    @settings(max_examples=60, deadline=None)
    def test_minmax_output_in_range(self, values):
        result, _, _ = min_max_scale(column_table("v", values), ["v"])
        for value in result.column_values("v"):
            assert -1e-9 <= value <= 1 + 1e-9


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


class TestTransforms:
    """Monotonic transforms applied before scaling."""

    def test_log_transform(self):
        table = column_table("v", [0, math.e - 1, -5, None])
        result, logs = log_transform(table, ["v"])
        values = result.column_values("v")
        assert values[0] == pytest.approx(0.0)
        assert values[1] == pytest.approx(1.0)
        assert values[2] == -5
        assert values[3] is None
        assert logs[0].rows_affected == 2

    def test_sqrt_transform(self):
        result, _ = sqrt_transform(column_table("v", [-1, 4]), ["v"])
        assert result.column_values("v") == [-1, 2.0]

    def test_box_cox(self):
        result, logs = box_cox_transform(column_table("v", [4, 0]), ["v"], lam=0.5)
        assert result.column_values("v") == [2.0, 0]
        assert "lambda=0.5" in logs[0].details

    def test_box_cox_overflow_leaves_value(self):
        result, logs = box_cox_transform(column_table("v", [1e300, 4]), ["v"], lam=2)
        assert result.column_values("v") == [1e300, 7.5]
        assert logs[0].rows_affected == 1

    def test_box_cox_zero_lambda_is_log(self):
        result, _ = box_cox_transform(column_table("v", [math.e]), ["v"], lam=0)
        assert result.column_values("v") == [pytest.approx(1.0)]

    def test_none_is_noop(self):
        table = column_table("v", [1, 2])
        result, logs = apply_transform(table, ["v"], "none")
        assert result is table
        assert logs == []

    def test_invalid_transform(self):
        with pytest.raises(ValueError, match="Invalid transform"):
            apply_transform(column_table("v", [1]), ["v"], "exp")


class TestNumericColumns:
    """numeric_columns helper."""

    def test_detects_numeric(self):
        table = Table.from_records(
            [{"a": 1, "b": "x", "c": None, "d": 2.5}, {"a": None, "b": 1, "c": None, "d": 3}]
        )
        assert numeric_columns(table) == ["a", "d"]
        assert numeric_columns(table, exclude=["a"]) == ["d"]
