"""ML-readiness scoring for a prepared table.

The checks first decide whether the table already looks processed
(engineered feature names, scaled numerics, one-hot blocks, no categorical
columns left). Processed tables start at 95 and only lose points for
critical problems; raw tables start at 100 and are scored strictly.
"""

from __future__ import annotations

from typing import Iterable, Optional

from tableprep.models import (
    ColumnStatistics,
    MLTask,
    ReadinessReport,
    Table,
    ValidationIssue,
    cell_key,
    cell_text,
    is_number,
)
from tableprep.tools.inspection import statistics_by_name

ENGINEERED_PATTERNS = (
    "_binned", "_lag_", "_rolling_", "_mean", "_sum", "_std",
    "_min", "_max", "_count", "_diff", "_pct",
)

NOT_READY_MESSAGE = "Dataset is not ML-ready. Address critical issues before proceeding."


def _class_distribution(table: Table, column: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for value in table.column_values(column):
        if value is not None:
            key = cell_text(value)
            counts[key] = counts.get(key, 0) + 1
    return counts


def _imbalance_ratio(counts: Iterable[int]) -> Optional[float]:
    counts = list(counts)
    if len(counts) < 2:
        return None
    return max(counts) / min(counts)


def detect_ml_task(
    table: Table, target_column: str, statistics: Iterable[ColumnStatistics]
) -> MLTask:
    """Guess regression vs classification from the target's statistics.

    Numeric targets with more than 20 distinct values (or a distinct ratio
    above 0.1) are regression; every other target is classification.
    """
    stats = statistics_by_name(statistics).get(target_column)
    if stats is None:
        return MLTask(type="unknown", confidence=0.0)

    present = stats.total_count - stats.missing_count
    if stats.type == "number":
        if stats.unique_count > 20 or (present and stats.unique_count / present > 0.1):
            return MLTask(
                type="regression",
                confidence=0.85,
                target_column=target_column,
                num_classes=stats.unique_count,
            )
        confidence = 0.7
    else:
        confidence = 0.9
    return MLTask(
        type="classification",
        confidence=confidence,
        target_column=target_column,
        num_classes=stats.unique_count,
        class_distribution=_class_distribution(table, target_column),
    )


def validate_target(
    table: Table, target_column: str, statistics: Iterable[ColumnStatistics]
) -> list[ValidationIssue]:
    """Check the target for missing values, class imbalance and sample size."""
    stats = statistics_by_name(statistics).get(target_column)
    if stats is None:
        return [
            ValidationIssue(
                type="error",
                message=f'Target column "{target_column}" not found',
                column=target_column,
            )
        ]

    issues = []
    if stats.missing_count > 0:
        issues.append(
            ValidationIssue(
                type="error",
                message=(
                    f"Target column has {stats.missing_count} missing values "
                    f"({stats.missing_percentage:.1f}%)"
                ),
                column=target_column,
                suggestion="Remove rows with missing target values",
            )
        )

    if stats.type != "number" or stats.unique_count <= 20:
        ratio = _imbalance_ratio(_class_distribution(table, target_column).values())
        if ratio is not None and ratio > 10:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f"Severe class imbalance detected (ratio: {ratio:.1f}:1)",
                    column=target_column,
                    suggestion="Consider using SMOTE, undersampling, or class weights",
                )
            )
        elif ratio is not None and ratio > 3:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f"Class imbalance detected (ratio: {ratio:.1f}:1)",
                    column=target_column,
                    suggestion="Consider using stratified splitting and class weights",
                )
            )

    if len(table) < 100:
        issues.append(
            ValidationIssue(
                type="warning",
                message=f"Dataset has only {len(table)} samples",
                suggestion="Consider collecting more data for reliable ML models",
            )
        )
    return issues


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _looks_processed(table: Table, statistics: list[ColumnStatistics]) -> dict[str, bool]:
    columns = table.columns
    numeric = [s for s in statistics if s.type == "number"]
    categorical = [s for s in statistics if s.type != "number"]

    engineered = any(p in col for col in columns for p in ENGINEERED_PATTERNS)
    scaled = [
        s
        for s in numeric
        if s.min is not None
        and s.max is not None
        and (
            (s.min >= -0.1 and s.max <= 1.1)
            or (s.min >= -3.5 and s.max <= 3.5 and s.mean is not None and abs(s.mean) < 1)
        )
    ]
    likely_scaled = len(numeric) >= 2 and len(scaled) / len(numeric) >= 0.7
    binary = sum(1 for s in numeric if s.unique_count == 2)
    one_hot = binary >= 5 or (len(columns) > 5 and binary / len(columns) > 0.3)
    no_categoricals = not categorical and len(columns) > 3
    return {
        "processed": engineered or (likely_scaled and one_hot) or no_categoricals,
        "scaled": likely_scaled,
        "one_hot": one_hot,
        "no_categoricals": no_categoricals,
    }


def _score_processed(
    table: Table,
    statistics: list[ColumnStatistics],
    target_column: Optional[str],
    signals: dict[str, bool],
    issues: list[ValidationIssue],
    summary: dict[str, int],
) -> int:
    score = 95
    for stats in statistics:
        if stats.missing_percentage == 100:
            issues.append(
                ValidationIssue(
                    type="error",
                    message=f'Column "{stats.name}" is completely empty',
                    column=stats.name,
                    suggestion="Remove this column",
                )
            )
            score -= 15
        elif stats.missing_percentage > 50:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f'Column "{stats.name}" has {stats.missing_percentage:.1f}% missing',
                    column=stats.name,
                )
            )
            score -= 5
        summary["missing_values"] += stats.missing_count

    target_stats = statistics_by_name(statistics).get(target_column) if target_column else None
    if target_stats is not None and target_stats.type != "number":
        counts: dict[str, int] = {}
        for value in table.column_values(target_column):
            key = "null" if value is None else cell_text(value)
            counts[key] = counts.get(key, 0) + 1
        ratio = _imbalance_ratio(counts.values())
        if ratio is not None and ratio > 20:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f"Severe class imbalance detected ({ratio:.1f}:1)",
                    column=target_column,
                    suggestion="Use class weights or resampling",
                )
            )
            score -= 5

    if summary["missing_values"] == 0:
        issues.append(ValidationIssue(type="success", message="No missing values - data is clean"))
    if signals["one_hot"]:
        issues.append(ValidationIssue(type="success", message="Categorical variables are encoded"))
    if signals["scaled"]:
        issues.append(ValidationIssue(type="success", message="Numeric features are scaled"))
    if signals["no_categoricals"]:
        issues.append(
            ValidationIssue(type="success", message="All features are numeric (ML-ready)")
        )
    return score


def _score_raw(
    table: Table,
    statistics: list[ColumnStatistics],
    target_column: Optional[str],
    issues: list[ValidationIssue],
    summary: dict[str, int],
) -> int:
    score = 100
    features = [s for s in statistics if s.name != target_column]

    for stats in features:
        summary["missing_values"] += stats.missing_count
        pct = stats.missing_percentage
        if pct > 50:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f'Column "{stats.name}" has {pct:.1f}% missing values',
                    column=stats.name,
                    suggestion="Drop this column or impute values",
                )
            )
            score -= 5
        elif pct > 10:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f'Column "{stats.name}" has {pct:.1f}% missing values',
                    column=stats.name,
                    suggestion="Impute missing values",
                )
            )
            score -= 3
        elif pct > 0:
            score -= 1

    seen: set[tuple] = set()
    for row in table.rows:
        key = tuple(cell_key(row.get(col)) for col in table.columns)
        if key in seen:
            summary["duplicate_rows"] += 1
        else:
            seen.add(key)
    if summary["duplicate_rows"]:
        share = summary["duplicate_rows"] / len(table) * 100
        issues.append(
            ValidationIssue(
                type="warning",
                message=f"Found {summary['duplicate_rows']} duplicate rows ({share:.1f}%)",
                suggestion="Remove duplicates before training",
            )
        )
        score -= min(10, int(share))

    for stats in features:
        if stats.type == "number":
            continue
        if stats.unique_count > 50:
            summary["high_cardinality_columns"] += 1
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=(
                        f'Column "{stats.name}" has high cardinality '
                        f"({stats.unique_count} categories)"
                    ),
                    column=stats.name,
                    suggestion="Apply encoding (frequency, target, or grouping)",
                )
            )
            score -= 4
        elif stats.unique_count > 1:
            issues.append(
                ValidationIssue(
                    type="info",
                    message=f'Column "{stats.name}" is categorical - needs encoding',
                    column=stats.name,
                    suggestion="Use one-hot or label encoding",
                )
            )
            score -= 2

    unscaled = sum(
        1
        for s in features
        if s.type == "number" and s.min is not None and s.max is not None and s.max - s.min > 10
    )
    if unscaled:
        issues.append(
            ValidationIssue(
                type="info",
                message=f"{unscaled} numeric column(s) may need scaling",
                suggestion="Apply standardization or min-max scaling",
            )
        )
        score -= min(10, unscaled * 2)

    for stats in features:
        if stats.type != "number" or stats.q1 is None or stats.q3 is None:
            continue
        iqr = stats.q3 - stats.q1
        lower, upper = stats.q1 - 1.5 * iqr, stats.q3 + 1.5 * iqr
        outliers = sum(
            1 for v in table.column_values(stats.name) if is_number(v) and (v < lower or v > upper)
        )
        if outliers > len(table) * 0.1:
            issues.append(
                ValidationIssue(
                    type="info",
                    message=(
                        f'Column "{stats.name}" has {outliers} outliers '
                        f"({outliers / len(table) * 100:.1f}%)"
                    ),
                    column=stats.name,
                    suggestion="Consider capping or removing outliers",
                )
            )
            score -= 2
        summary["outliers"] += outliers

    for stats in statistics:
        if stats.unique_count <= 1:
            issues.append(
                ValidationIssue(
                    type="warning",
                    message=f'Column "{stats.name}" has only {stats.unique_count} unique value',
                    column=stats.name,
                    suggestion="Remove this column",
                )
            )
            score -= 5

    if target_column:
        target_issues = validate_target(table, target_column, statistics)
        issues.extend(target_issues)
        score -= 15 * sum(1 for i in target_issues if i.type == "error")
        score -= 5 * sum(1 for i in target_issues if i.type == "warning")

    if len(table) < 100:
        issues.append(
            ValidationIssue(
                type="warning",
                message=f"Small dataset ({len(table)} rows)",
                suggestion="More data will improve model performance",
            )
        )
        score -= 5
    return score


def check_ml_readiness(
    table: Table,
    statistics: Iterable[ColumnStatistics],
    target_column: Optional[str] = None,
) -> ReadinessReport:
    """Score how ready *table* is for model training.

    Returns:
        A ``ReadinessReport`` with a 0-100 score, ``is_ready`` (score of at
        least 70 and no error issues), the issue list, up to five unique
        suggestions and summary counters.
    """
    statistics = list(statistics)
    summary = {
        "total_features": 0,
        "numeric_features": 0,
        "categorical_features": 0,
        "missing_values": 0,
        "duplicate_rows": 0,
        "outliers": 0,
        "high_cardinality_columns": 0,
    }
    if not len(table):
        return ReadinessReport(
            score=0,
            is_ready=False,
            is_processed=False,
            issues=[ValidationIssue(type="error", message="No data provided")],
            recommendations=["Upload a dataset"],
            summary=summary,
        )

    target_column = target_column or None
    issues: list[ValidationIssue] = []
    signals = _looks_processed(table, statistics)
    if signals["processed"]:
        score = _score_processed(table, statistics, target_column, signals, issues, summary)
    else:
        score = _score_raw(table, statistics, target_column, issues, summary)
    score = max(0, min(100, score))

    summary["total_features"] = len(table.columns) - (1 if target_column else 0)
    summary["numeric_features"] = sum(
        1 for s in statistics if s.type == "number" and s.name != target_column
    )
    summary["categorical_features"] = sum(
        1 for s in statistics if s.type != "number" and s.name != target_column
    )

    has_errors = any(issue.type == "error" for issue in issues)
    recommendations = list(dict.fromkeys(i.suggestion for i in issues if i.suggestion))[:5]
    return ReadinessReport(
        score=score,
        is_ready=not has_errors and score >= 70,
        is_processed=signals["processed"],
        issues=issues,
        recommendations=recommendations,
        summary=summary,
    )


def generate_recommendations(report: ReadinessReport, task: MLTask) -> list[str]:
    """Turn a readiness report and task guess into practical next steps."""
    summary = report.summary
    recommendations = []
    if summary.get("missing_values", 0) > 0:
        recommendations.append(
            "Handle missing values using imputation or removal based on the percentage "
            "and importance of affected columns."
        )
    if summary.get("duplicate_rows", 0) > 0:
        recommendations.append(
            "Remove duplicate rows to prevent data leakage and improve model generalization."
        )
    if summary.get("high_cardinality_columns", 0) > 0:
        recommendations.append(
            "Use frequency encoding or target encoding for high-cardinality categorical "
            "features instead of one-hot encoding."
        )
    if summary.get("outliers", 0) > summary.get("total_features", 0) * 10:
        recommendations.append(
            "Consider outlier treatment (capping, removal, or transformation) for numeric "
            "features with many outliers."
        )
    if task.type == "classification" and task.class_distribution:
        ratio = _imbalance_ratio(task.class_distribution.values())
        if ratio is not None and ratio > 3:
            recommendations.append(
                "Use class weights, SMOTE, or stratified sampling to handle class imbalance."
            )
    if summary.get("numeric_features", 0) > 5:
        recommendations.append(
            "Apply feature scaling (StandardScaler or MinMaxScaler) for numeric features "
            "before training."
        )
    if summary.get("categorical_features", 0) > 3:
        recommendations.append(
            "Encode categorical features appropriately - use target encoding for "
            "high-cardinality features."
        )
    if task.type == "regression":
        recommendations.append("Consider log transformation for skewed target variables.")
        recommendations.append(
            "Check for multicollinearity between features using correlation analysis."
        )
    if not report.is_ready:
        recommendations.insert(0, NOT_READY_MESSAGE)
    return recommendations
