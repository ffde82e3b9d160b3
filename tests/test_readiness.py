"""Tests for ML-readiness scoring and recommendations."""

from tableprep.models import MLTask, ReadinessReport, Table
from tableprep.readiness import (
    NOT_READY_MESSAGE,
    check_ml_readiness,
    detect_ml_task,
    generate_recommendations,
    validate_target,
)
from tableprep.tools.inspection import analyze_columns

from conftest import column_table


def _stats(table: Table):
    return analyze_columns(table)


# ---------------------------------------------------------------------------
# Task detection
# ---------------------------------------------------------------------------


class TestDetectMlTask:
    """Regression vs classification guesses."""

    def test_regression(self, regression_table):
        task = detect_ml_task(regression_table, "y", _stats(regression_table))
        assert task.type == "regression"
        assert task.confidence == 0.85
        assert task.class_distribution is None

    def test_string_classification(self, people_table):
        task = detect_ml_task(people_table, "Bought", _stats(people_table))
        assert task.type == "classification"
        assert task.confidence == 0.9
        assert task.num_classes == 2
        assert task.class_distribution == {"yes": 3, "no": 3}

    def test_numeric_classification(self):
        table = column_table("label", [0, 1] * 20)
        task = detect_ml_task(table, "label", _stats(table))
        assert task.type == "classification"
        assert task.confidence == 0.7
        assert task.class_distribution == {"0": 20, "1": 20}

    def test_unknown_column(self, people_table):
        task = detect_ml_task(people_table, "Nope", _stats(people_table))
        assert task.type == "unknown"
        assert task.confidence == 0.0


class TestValidateTarget:
    """Target-column checks."""

    def test_missing_column(self, people_table):
        issues = validate_target(people_table, "Nope", _stats(people_table))
        assert [i.type for i in issues] == ["error"]
        assert issues[0].message == 'Target column "Nope" not found'

    def test_missing_values_and_imbalance(self):
        table = column_table("label", ["a"] * 11 + ["b", None])
        issues = validate_target(table, "label", _stats(table))
        messages = [i.message for i in issues]
        assert messages[0] == "Target column has 1 missing values (7.7%)"
        assert "Severe class imbalance detected (ratio: 11.0:1)" in messages
        assert messages[-1] == "Dataset has only 13 samples"

    def test_mild_imbalance(self):
        table = column_table("label", ["a"] * 4 + ["b"])
        issues = validate_target(table, "label", _stats(table))
        assert issues[0].message == "Class imbalance detected (ratio: 4.0:1)"


# ---------------------------------------------------------------------------
# Readiness score
# ---------------------------------------------------------------------------


class TestCheckMlReadiness:
    """Scoring processed and raw tables."""

    def test_empty_table(self):
        table = Table(columns=("a",), rows=())
        report = check_ml_readiness(table, [])
        assert report.score == 0
        assert not report.is_ready
        assert report.issues[0].message == "No data provided"
        assert report.recommendations == ["Upload a dataset"]

    def test_processed_table(self):
        table = Table.from_records(
            [{"a": i, "b": i * 2, "c": i % 3, "d": -i} for i in range(10)]
        )
        report = check_ml_readiness(table, _stats(table))
        assert report.is_processed
        assert report.score == 95
        assert report.is_ready
        messages = [i.message for i in report.issues]
        assert "No missing values - data is clean" in messages
        assert "All features are numeric (ML-ready)" in messages
        assert report.summary["numeric_features"] == 4

    def test_raw_table(self, people_table):
        report = check_ml_readiness(people_table, _stats(people_table), "Bought")
        assert not report.is_processed
        assert not report.is_ready
        assert report.score < 70
        assert report.summary["duplicate_rows"] == 1
        assert report.summary["total_features"] == 4
        assert report.summary["categorical_features"] == 2
        messages = [i.message for i in report.issues]
        assert "Found 1 duplicate rows (16.7%)" in messages
        assert "Small dataset (6 rows)" in messages
        assert len(report.recommendations) <= 5
        assert len(set(report.recommendations)) == len(report.recommendations)

    def test_score_bounds(self, people_table):
        report = check_ml_readiness(people_table, _stats(people_table))
        assert 0 <= report.score <= 100


class TestGenerateRecommendations:
    """Next-step suggestions."""

    def test_not_ready_first(self):
        report = ReadinessReport(
            score=40,
            is_ready=False,
            is_processed=False,
            summary={"missing_values": 3, "duplicate_rows": 1, "total_features": 2},
        )
        task = MLTask(type="regression", confidence=0.85, target_column="y")
        recommendations = generate_recommendations(report, task)
        assert recommendations[0] == NOT_READY_MESSAGE
        assert any("imputation" in r for r in recommendations)
        assert any("duplicate rows" in r for r in recommendations)
        assert "Consider log transformation for skewed target variables." in recommendations

    def test_imbalanced_classification(self):
        report = ReadinessReport(score=90, is_ready=True, is_processed=True, summary={})
        task = MLTask(
            type="classification",
            confidence=0.9,
            target_column="label",
            class_distribution={"a": 40, "b": 5},
        )
        recommendations = generate_recommendations(report, task)
        assert recommendations == [
            "Use class weights, SMOTE, or stratified sampling to handle class imbalance."
        ]
