"""Report generator that turns a pipeline run into audit artifacts.

Produces the audit summary (before/after shape, quality scores, warnings),
a Markdown report on disk, a flat CSV summary and a replayable pipeline
description in JSON.
"""

from __future__ import annotations

import dataclasses
import json
import math
import os
import re
from datetime import datetime
from typing import Any, Optional

from tableprep.models import (
    AuditReport,
    BaselineModel,
    CleaningLogEntry,
    ColumnStatistics,
    ReadinessReport,
    ScalerConfig,
    Table,
    cell_key,
    cell_text,
    is_missing,
    round_half_up,
)

PIPELINE_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


def calculate_data_quality(table: Table) -> dict[str, float]:
    """Completeness, uniqueness, consistency and validity ratios plus a weighted overall."""
    if not len(table):
        return {"completeness": 0, "uniqueness": 0, "consistency": 0, "validity": 0, "overall": 0}

    columns = table.columns
    total_cells = len(table) * len(columns)
    filled = sum(1 for row in table.rows for col in columns if not is_missing(row.get(col)))
    completeness = filled / total_cells if total_cells else 0

    distinct_rows = {tuple(cell_key(row.get(col)) for col in columns) for row in table.rows}
    uniqueness = len(distinct_rows) / len(table)

    consistent = 0
    for col in columns:
        kinds = {cell_key(v)[0] for v in table.column_values(col) if v is not None}
        if len(kinds) <= 1:
            consistent += 1
    consistency = consistent / len(columns) if columns else 0

    valid = 0
    for row in table.rows:
        for col in columns:
            value = row.get(col)
            if isinstance(value, float) and not math.isfinite(value):
                continue
            valid += 1
    validity = valid / total_cells if total_cells else 0

    overall = completeness * 0.3 + uniqueness * 0.2 + consistency * 0.25 + validity * 0.25
    return {
        "completeness": round_half_up(completeness, 2),
        "uniqueness": round_half_up(uniqueness, 2),
        "consistency": round_half_up(consistency, 2),
        "validity": round_half_up(validity, 2),
        "overall": round_half_up(overall, 2),
    }


def detect_potential_issues(table: Table, target_column: Optional[str] = None) -> list[str]:
    """Plain-language warnings about the processed table."""
    if not len(table):
        return ["Dataset is empty"]

    warnings = []
    if len(table) < 100:
        warnings.append(
            f"Dataset has only {len(table)} rows - may not be sufficient for ML training"
        )

    for col in table.columns:
        present = [v for v in table.column_values(col) if v is not None]
        distinct = len({cell_key(v) for v in present})
        if present and isinstance(present[0], str) and distinct > len(table) * 0.5:
            warnings.append(
                f'Column "{col}" has high cardinality ({distinct} unique values) '
                f"- consider encoding or removal"
            )

    if target_column and target_column in table.columns:
        values = table.column_values(target_column)
        nulls = sum(1 for v in values if v is None)
        if nulls:
            warnings.append(f'Target column "{target_column}" has {nulls} missing values')
        counts: dict[tuple, int] = {}
        for value in values:
            if value is not None:
                counts[cell_key(value)] = counts.get(cell_key(value), 0) + 1
        if 1 < len(counts) <= 10:
            ratio = max(counts.values()) / min(counts.values())
            if ratio > 3:
                warnings.append(f"Target column has imbalanced classes (ratio {ratio:.1f}:1)")

    for col in table.columns:
        if len({cell_key(v) for v in table.column_values(col)}) == 1:
            warnings.append(f'Column "{col}" has only one unique value - consider removal')
    return warnings


def generate_audit_report(
    original: Table,
    processed: Table,
    logs: list[CleaningLogEntry],
    target_column: Optional[str] = None,
    split_config: Optional[dict] = None,
) -> AuditReport:
    """Summarize what a pipeline run did to the table."""
    original_columns = set(original.columns)
    processed_columns = set(processed.columns)
    summary = {
        "original_rows": len(original),
        "processed_rows": len(processed),
        "rows_removed": len(original) - len(processed),
        "original_columns": len(original.columns),
        "processed_columns": len(processed.columns),
        "columns_added": len(processed_columns - original_columns),
        "columns_removed": len(original_columns - processed_columns),
        "total_operations": len(logs),
    }
    return AuditReport(
        generated_at=datetime.now().isoformat(),
        summary=summary,
        transformations=[entry.to_dict() for entry in logs],
        data_quality=calculate_data_quality(processed),
        warnings=detect_potential_issues(processed, target_column),
        target_column=target_column or None,
        split_config=split_config,
    )


# ---------------------------------------------------------------------------
# Markdown report
# ---------------------------------------------------------------------------


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _format_statistics(statistics: list[ColumnStatistics]) -> str:
    lines = [
        "| Column | Type | Missing % | Unique | Mean | Std Dev |",
        "|--------|------|-----------|--------|------|---------|",
    ]
    for stats in statistics:
        mean = "" if stats.mean is None else f"{stats.mean:.3f}"
        std = "" if stats.std_dev is None else f"{stats.std_dev:.3f}"
        lines.append(
            f"| {stats.name} | {stats.type} | {stats.missing_percentage:.1f}% "
            f"| {stats.unique_count} | {mean} | {std} |"
        )
    lines.append("")
    return "\n".join(lines)


def _format_readiness(readiness: ReadinessReport) -> str:
    lines = [
        f"- **Score**: {readiness.score}/100",
        f"- **Ready**: {'yes' if readiness.is_ready else 'no'}",
        f"- **Data state**: {'processed' if readiness.is_processed else 'raw'}",
        "",
    ]
    if readiness.issues:
        lines.append("### Issues\n")
        for issue in readiness.issues:
            lines.append(f"- [{issue.type}] {issue.message}")
        lines.append("")
    if readiness.recommendations:
        lines.append("### Recommendations\n")
        for i, rec in enumerate(readiness.recommendations, 1):
            lines.append(f"{i}. {rec}")
        lines.append("")
    return "\n".join(lines)


def _format_model(model: BaselineModel) -> str:
    lines = [
        f"- **Model**: {model.model_type}",
        f"- **Target**: {model.target}",
        f"- **Features**: {', '.join(model.features)}",
    ]
    for name, value in model.metrics.items():
        lines.append(f"- **{name}**: {value}")
    lines.append("")
    return "\n".join(lines)


def generate_report(
    audit: AuditReport,
    output_dir: str,
    statistics: Optional[list[ColumnStatistics]] = None,
    readiness: Optional[ReadinessReport] = None,
    model: Optional[BaselineModel] = None,
) -> str:
    """Render the audit as Markdown and save it to output_dir/audit_report.md.

    Args:
        audit: Result of :func:`generate_audit_report`.
        output_dir: Directory to save the report (created if missing).
        statistics: Final column statistics for the column table.
        readiness: Readiness report to include.
        model: Baseline model whose metrics to include.

    Returns:
        The path to the saved report file.
    """
    os.makedirs(output_dir, exist_ok=True)
    summary = audit.summary
    sections: list[str] = []

    sections.append("# Data Cleaning Audit Report\n")
    sections.append(f"Generated: {audit.generated_at}\n")

    sections.append("## Summary\n")
    sections.append(f"- **Original rows**: {summary['original_rows']}")
    sections.append(f"- **Processed rows**: {summary['processed_rows']}")
    sections.append(f"- **Rows removed**: {summary['rows_removed']}")
    sections.append(f"- **Original columns**: {summary['original_columns']}")
    sections.append(f"- **Processed columns**: {summary['processed_columns']}")
    sections.append(f"- **Columns added**: {summary['columns_added']}")
    sections.append(f"- **Columns removed**: {summary['columns_removed']}")
    sections.append(f"- **Total operations**: {summary['total_operations']}\n")

    if audit.target_column:
        sections.append(f"**Target column**: {audit.target_column}\n")

    if audit.split_config:
        sections.append("## Data Split Configuration\n")
        split = audit.split_config
        sections.append(f"- Training set: {split.get('train_size', 0) * 100:.0f}%")
        sections.append(f"- Test set: {split.get('test_size', 0) * 100:.0f}%")
        if split.get("validation_size"):
            sections.append(f"- Validation set: {split['validation_size'] * 100:.0f}%")
        sections.append("")

    quality = audit.data_quality
    sections.append("## Data Quality Scores\n")
    sections.append("| Metric | Score |")
    sections.append("|--------|-------|")
    for name in ("completeness", "uniqueness", "consistency", "validity", "overall"):
        sections.append(f"| {name.title()} | {_pct(quality[name])} |")
    sections.append("")

    if audit.warnings:
        sections.append("## Warnings\n")
        for warning in audit.warnings:
            sections.append(f"- {warning}")
        sections.append("")

    sections.append("## Transformation Log\n")
    if audit.transformations:
        for i, step in enumerate(audit.transformations, 1):
            column = f" ({step['column']})" if step.get("column") else ""
            sections.append(f"{i}. **{step['operation']}**{column} [{step['category']}]")
            sections.append(f"   - {step['details']}")
            sections.append(f"   - Rows affected: {step['rowsAffected']}")
    else:
        sections.append("No transformations were performed.")
    sections.append("")

    if statistics:
        sections.append("## Column Statistics\n")
        sections.append(_format_statistics(statistics))

    if readiness is not None:
        sections.append("## ML Readiness\n")
        sections.append(_format_readiness(readiness))

    if model is not None:
        sections.append("## Baseline Model\n")
        sections.append(_format_model(model))

    report_path = os.path.join(output_dir, "audit_report.md")
    with open(report_path, "w", encoding="utf-8") as f:
        f.write("\n".join(sections))
    return report_path


# ---------------------------------------------------------------------------
# CSV summary and pipeline config
# ---------------------------------------------------------------------------


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def generate_csv_summary(audit: AuditReport) -> str:
    """Flatten the audit into ``Section,Metric,Value`` rows."""
    summary = audit.summary
    quality = audit.data_quality
    rows = ["Section,Metric,Value"]
    for key, label in (
        ("original_rows", "Original Rows"),
        ("processed_rows", "Processed Rows"),
        ("rows_removed", "Rows Removed"),
        ("original_columns", "Original Columns"),
        ("processed_columns", "Processed Columns"),
        ("columns_added", "Columns Added"),
        ("columns_removed", "Columns Removed"),
    ):
        rows.append(f"Summary,{label},{summary[key]}")
    for key in ("completeness", "uniqueness", "consistency", "validity", "overall"):
        rows.append(f"Quality,{key.title()},{cell_text(float(quality[key]))}")
    for i, step in enumerate(audit.transformations, 1):
        rows.append(f"Transformation {i},Operation,{_quote(step['operation'])}")
        rows.append(f"Transformation {i},Details,{_quote(step['details'])}")
        rows.append(f"Transformation {i},Rows Affected,{step['rowsAffected']}")
    return "\n".join(rows)


_STRATEGY = re.compile(r"strategy: (\w+)")
_COLUMNS = re.compile(r"columns?: ([^()]+)", re.IGNORECASE)
_THRESHOLD = re.compile(r"threshold: (\d+(?:\.\d+)?)")


def _step_config(entry: CleaningLogEntry) -> dict[str, Any]:
    config: dict[str, Any] = {}
    match = _STRATEGY.search(entry.details)
    if match:
        config["strategy"] = match.group(1)
    if entry.column:
        config["columns"] = [entry.column]
    else:
        match = _COLUMNS.search(entry.details)
        if match:
            config["columns"] = [c.strip() for c in match.group(1).split(",")]
    match = _THRESHOLD.search(entry.details)
    if match:
        config["threshold"] = float(match.group(1))
    return config


def generate_pipeline_config(
    logs: list[CleaningLogEntry],
    target_column: Optional[str] = None,
    split_config: Optional[dict] = None,
    scaler: Optional[ScalerConfig] = None,
) -> dict[str, Any]:
    """Describe the run as an ordered list of steps that can be replayed."""
    return {
        "version": PIPELINE_VERSION,
        "createdAt": datetime.now().isoformat(),
        "steps": [
            {
                "order": i,
                "type": entry.category,
                "operation": entry.operation,
                "config": _step_config(entry),
            }
            for i, entry in enumerate(logs, 1)
        ],
        "targetColumn": target_column or None,
        "splitConfig": split_config,
        "scalerConfig": dataclasses.asdict(scaler) if scaler is not None else None,
    }


def export_pipeline_json(pipeline: dict[str, Any]) -> str:
    return json.dumps(pipeline, indent=2, default=str)
