"""Tests for the LangGraph pipeline orchestrator."""

import pytest

from tableprep.config import PipelineConfiguration
from tableprep.models import Table
from tableprep.pipeline import (
    MODEL_STAGE,
    build_graph,
    build_stages,
    finalize_node,
    run_pipeline,
    stage_node,
)

from conftest import column_table


def _config(**options) -> PipelineConfiguration:
    return PipelineConfiguration.from_dict(options)


def _operations(result) -> list[str]:
    return [log.operation for log in result.logs]


# ---------------------------------------------------------------------------
# Stage list
# ---------------------------------------------------------------------------


class TestBuildStages:
    """Fixed stage order and enablement."""

    def test_order(self):
        names = [stage.name for stage in build_stages(PipelineConfiguration())]
        assert names[:4] == [
            "normalize_columns", "trim_whitespace", "standardize_case", "remove_duplicates",
        ]
        assert names.index("handle_outliers") < names.index("time_features")
        assert names.index("geo_encoding") < names.index("encoding") < names.index("scaling")
        assert names[-3:] == [MODEL_STAGE, "nan_cleanup", "remove_null_columns"]

    def test_default_enabled_stages(self):
        enabled = [s.name for s in build_stages(PipelineConfiguration()) if s.enabled]
        assert enabled == [
            "normalize_columns",
            "trim_whitespace",
            "remove_duplicates",
            "handle_missing",
            "nan_cleanup",
            "remove_null_columns",
        ]

    def test_toggle(self):
        stages = build_stages(_config(removeDuplicates=False, outlier={"enabled": True}))
        enabled = {s.name for s in stages if s.enabled}
        assert "remove_duplicates" not in enabled
        assert "handle_outliers" in enabled


# ---------------------------------------------------------------------------
# Graph building
# ---------------------------------------------------------------------------


class TestBuildGraph:
    """Compiled workflow structure."""

    def test_nodes(self):
        config = PipelineConfiguration()
        app = build_graph(build_stages(config), config)
        nodes = set(app.get_graph().nodes)
        assert {"normalize_columns", "remove_null_columns", "finalize"} <= nodes
        assert "encoding" not in nodes

    def test_no_enabled_stages(self):
        app = build_graph([], PipelineConfiguration())
        assert "finalize" in set(app.get_graph().nodes)


class TestNodes:
    """stage_node and finalize_node called directly."""

    def _state(self, table):
        return {"table": table, "original": table, "logs": [], "column_mapping": {}}

    def test_stage_node_appends_logs(self, people_table):
        stage = next(s for s in build_stages(PipelineConfiguration()) if s.name == "remove_duplicates")
        state = stage_node(self._state(people_table), stage, PipelineConfiguration())
        assert len(state["table"]) == 5
        assert [log.operation for log in state["logs"]] == ["Remove Duplicates"]

    def test_finalize_computes_statistics(self, people_table):
        state = finalize_node(self._state(people_table))
        assert [s.name for s in state["statistics"]] == list(people_table.columns)


# ---------------------------------------------------------------------------
# run_pipeline
# ---------------------------------------------------------------------------


class TestRunPipeline:
    """End-to-end runs over small tables."""

    def test_default_run(self, people_table):
        result = run_pipeline(people_table)
        assert result.failed_stage is None
        assert result.columns == ("name", "age", "city", "income", "bought")
        assert len(result.table) == 5
        assert _operations(result) == [
            "Normalize Column Names", "Trim Whitespace", "Remove Duplicates",
        ]
        assert result.table.get(0, "name") == "Alice"
        assert result.column_mapping["Bought"] == "bought"
        assert [s.name for s in result.statistics] == list(result.columns)

    def test_input_not_modified(self, people_table):
        before = people_table.rows
        run_pipeline(people_table)
        assert people_table.rows == before
        assert people_table.get(0, "Name") == "  Alice "

    def test_disabled_stage_leaves_no_log(self, people_table):
        result = run_pipeline(people_table, _config(removeDuplicates=False))
        assert "Remove Duplicates" not in _operations(result)
        assert len(result.table) == 6

    def test_yield_point_sees_each_stage(self, people_table):
        labels = []
        run_pipeline(people_table, yield_point=labels.append)
        assert labels == [
            "normalize_columns",
            "trim_whitespace",
            "remove_duplicates",
            "handle_missing",
            "nan_cleanup",
            "remove_null_columns",
        ]

    def test_on_complete_called_once(self, people_table):
        calls = []
        run_pipeline(people_table, on_complete=lambda: calls.append(True))
        assert calls == [True]

    def test_empty_table(self):
        table = Table(columns=("a", "b"), rows=())
        result = run_pipeline(table)
        assert result.columns == ("a", "b")
        assert len(result.table) == 0
        assert _operations(result) == ["Validation"]
        assert result.logs[0].category == "error"
        assert result.failed_stage is None

    def test_target_resolved_through_column_mapping(self, people_table):
        config = _config(targetColumn="Bought", model={"enabled": True})
        result = run_pipeline(people_table, config)
        assert result.model is not None
        assert result.model.target == "bought"
        assert result.model.model_type == "logistic_regression"
        assert set(result.model.features) == {"age", "income"}
        assert _operations(result)[-1] == "Baseline Model Training"

    def test_scaling_excludes_target(self, regression_table):
        config = _config(targetColumn="y", scaling={"enabled": True, "method": "minmax"})
        result = run_pipeline(regression_table, config)
        assert result.table.column_values("y") == regression_table.column_values("y")
        assert result.scaler.columns == ["x1", "x2"]
        assert min(result.table.column_values("x1")) == 0.0
        assert max(result.table.column_values("x1")) == 1.0

    def test_encoding_skips_high_cardinality(self):
        table = Table.from_records(
            [{"code": f"c{i}", "color": "red" if i % 2 else "blue"} for i in range(12)]
        )
        config = _config(
            encoding={"enabled": True, "selectedColumns": ["code", "color"], "maxCategories": 10}
        )
        result = run_pipeline(table, config)
        assert "code" in result.columns
        assert "color" not in result.columns
        assert set(result.encoders) == {"color"}
        skipped = [log for log in result.logs if log.details.startswith("Skipped")]
        assert skipped[0].details == "Skipped: 12 categories exceeds the maximum of 10"
        assert skipped[0].category == "validation"

    def test_encoding_skips_target(self, people_table):
        config = _config(targetColumn="Bought", encoding={"enabled": True})
        result = run_pipeline(people_table, config)
        assert "bought" in result.columns
        assert "city" not in result.columns
        assert "city" in result.encoders

    def test_missing_feature_column_is_shape_error(self, people_table):
        config = _config(features={"time": {"enabled": True, "column": "when"}})
        result = run_pipeline(people_table, config)
        assert result.failed_stage is None
        error = next(log for log in result.logs if log.operation == "Time Feature Extraction")
        assert error.category == "error"
        assert error.details == "Column 'when' not found in table"

    def test_missing_configured_column_reported(self, people_table):
        config = _config(outlier={"enabled": True, "columns": ["Age", "Height"]})
        result = run_pipeline(people_table, config)
        skipped = [log for log in result.logs if log.category == "validation"]
        assert [log.column for log in skipped] == ["Height"]

    def test_statistics_recomputed_after_dedupe(self):
        table = column_table("a", [10, 10, 10, 1, None])
        result = run_pipeline(table, _config(missingStrategy="mean"))
        assert result.table.column_values("a") == [10, 1, 5.5]
        fill = next(log for log in result.logs if log.operation == "Fill Missing Values")
        assert fill.details == "Filled 1 value with mean (5.5)"

    def test_polynomial_overflow_does_not_fail_stage(self):
        table = Table.from_records([{"a": 1e200, "b": 2.0}, {"a": 3.0, "b": 4.0}])
        config = _config(features={"polynomial": {"enabled": True, "columns": ["a", "b"]}})
        result = run_pipeline(table, config)
        assert result.failed_stage is None
        assert "Polynomial Features" in _operations(result)
        assert result.table.column_values("a_pow2") == [None, 9.0]
        assert result.table.column_values("a_x_b") == [2e200, 12.0]


class TestDeterminism:
    """Repeated runs over the same input."""

    @staticmethod
    def _trail(result):
        return [(log.operation, log.column, log.details, log.rows_affected) for log in result.logs]

    def test_repeat_run_is_identical(self, people_table):
        config = _config(
            removeNearDuplicates=True,
            outlier={"enabled": True},
            encoding={"enabled": True},
            scaling={"enabled": True},
        )
        first = run_pipeline(people_table, config)
        second = run_pipeline(people_table, config)
        assert first.failed_stage is None
        assert first.table == second.table
        assert self._trail(first) == self._trail(second)
        assert first.scaler == second.scaler
        assert first.encoders == second.encoders

    def test_repeat_geo_cluster_run_is_identical(self):
        rows = [{"lat": 40.7 + (i % 3) * 0.5, "lon": -74.0 + i * 0.01} for i in range(9)]
        config = _config(
            geo={"enabled": True, "latColumn": "lat", "lonColumn": "lon", "method": "cluster", "numClusters": 3}
        )
        first = run_pipeline(Table.from_records(rows), config)
        second = run_pipeline(Table.from_records(rows), config)
        assert first.table.column_values("geo_cluster") == second.table.column_values("geo_cluster")
        assert first.centroids == second.centroids


class TestStageFailures:
    """Error routing between stages."""

    def test_failed_stage_stops_run(self, people_table, monkeypatch):
        def boom(table, columns=None):
            raise RuntimeError("boom")

        monkeypatch.setattr("tableprep.pipeline.remove_duplicates", boom)
        labels = []
        result = run_pipeline(people_table, yield_point=labels.append)
        assert result.failed_stage == "remove_duplicates"
        assert result.logs[-1].operation == "Pipeline Error"
        assert result.logs[-1].details == "Stage 'remove_duplicates' failed: boom"
        assert "handle_missing" not in labels
        # Output of the last successful stage, with fresh statistics
        assert len(result.table) == 6
        assert result.table.get(0, "name") == "Alice"
        assert len(result.statistics) == 5

    def test_on_complete_after_failure(self, people_table, monkeypatch):
        def boom(table, columns=None):
            raise RuntimeError("boom")

        monkeypatch.setattr("tableprep.pipeline.trim_whitespace", boom)
        calls = []
        result = run_pipeline(people_table, on_complete=lambda: calls.append(True))
        assert result.failed_stage == "trim_whitespace"
        assert calls == [True]

    def test_model_failure_continues(self, people_table, monkeypatch):
        def boom(*args, **kwargs):
            raise ValueError("Insufficient data for training")

        monkeypatch.setattr("tableprep.pipeline.auto_train_baseline", boom)
        labels = []
        config = _config(targetColumn="Bought", model={"enabled": True})
        result = run_pipeline(people_table, config, yield_point=labels.append)
        assert result.failed_stage is None
        assert result.model is None
        entry = next(log for log in result.logs if log.operation == "Baseline Model Error")
        assert entry.details == "Model training failed: Insufficient data for training"
        assert labels[-1] == "remove_null_columns"

    def test_model_without_target(self, people_table):
        result = run_pipeline(people_table, _config(model={"enabled": True}))
        assert result.model is None
        entry = next(log for log in result.logs if log.operation == "Baseline Model")
        assert entry.category == "error"


@pytest.mark.parametrize("method", ["grid", "hex", "cluster"])
def test_geo_stage(method):
    rows = [{"Latitude": 40.7 + i * 0.01, "Longitude": -74.0 + i * 0.01} for i in range(6)]
    config = _config(geo={"enabled": True, "method": method, "numClusters": 2})
    result = run_pipeline(Table.from_records(rows), config)
    assert result.failed_stage is None
    assert result.logs[-1].category == "feature"
    if method == "cluster":
        assert len(result.centroids) == 2
