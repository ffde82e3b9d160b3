"""Inspection tools: per-column statistics and categorical detection.

The analyzer is a pure function of the table; it never mutates its input and
is safe to call as often as a caller needs fresh numbers.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, Optional

import numpy as np

from tableprep.models import (
    PLACEHOLDER_VALUES,
    ColumnStatistics,
    Table,
    cell_key,
    cell_text,
    is_missing,
    is_number,
)

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}|\d{2}/\d{2}/\d{4}|\d{2}-\d{2}-\d{4}")


def analyze_columns(
    table: Table, columns: Optional[Iterable[str]] = None
) -> list[ColumnStatistics]:
    """Compute statistics for each requested column, preserving order.

    Args:
        table: The table to inspect.
        columns: Column names to analyze. Defaults to every declared column.

    Returns:
        One ``ColumnStatistics`` per requested column.

    Raises:
        ValueError: If a requested column is not declared on the table.
    """
    names = list(table.columns if columns is None else columns)
    return [analyze_column(table, name) for name in names]


def analyze_column(table: Table, column: str) -> ColumnStatistics:
    """Compute statistics for a single column."""
    if column not in table.columns:
        raise ValueError(f"Column '{column}' not found in table.")

    values = table.column_values(column)
    total = len(values)
    present = [v for v in values if not is_missing(v)]
    missing = total - len(present)

    numeric = [v for v in present if is_number(v)]
    strings = [v for v in present if isinstance(v, str)]
    dates = [v for v in present if isinstance(v, datetime)]
    booleans = [v for v in present if isinstance(v, bool)]

    col_type = _infer_type(present, numeric, strings, dates, booleans)

    stats = dict(
        name=column,
        type=col_type,
        total_count=total,
        unique_count=len({cell_text(v) for v in present}),
        missing_count=missing,
        missing_percentage=(missing / total * 100) if total else 0.0,
        mode=_mode(present),
    )
    if col_type == "number":
        stats.update(_numeric_summary(numeric))
    return ColumnStatistics(**stats)


def _infer_type(present, numeric, strings, dates, booleans) -> str:
    if not present:
        return "string"
    if len(numeric) == len(present):
        return "number"
    if len(booleans) == len(present):
        return "boolean"
    if numeric and strings:
        return "mixed"
    textual = len(strings) + len(dates)
    if textual:
        date_like = len(dates) + sum(1 for s in strings if _DATE_PATTERN.search(s))
        if date_like > textual * 0.5:
            return "date"
    return "string"


def _mode(present: list):
    """Most frequent value, skipping generic placeholders when possible.

    Ties go to the value seen first.
    """
    counts: dict[tuple[str, str], int] = {}
    first_seen: dict[tuple[str, str], object] = {}
    for value in present:
        key = cell_key(value)
        counts[key] = counts.get(key, 0) + 1
        first_seen.setdefault(key, value)

    best_key = None
    best_count = 0
    for key, count in counts.items():
        value = first_seen[key]
        if isinstance(value, str) and value.lower() in PLACEHOLDER_VALUES:
            continue
        if count > best_count:
            best_key, best_count = key, count

    if best_key is None:
        for key, count in counts.items():
            if count > best_count:
                best_key, best_count = key, count

    return None if best_key is None else first_seen[best_key]


def _numeric_summary(numeric: list) -> dict:
    arr = np.asarray(numeric, dtype=float)
    ordered = np.sort(arr)
    n = len(ordered)
    mid = n // 2
    if n % 2:
        median = ordered[mid]
    else:
        median = (ordered[mid - 1] + ordered[mid]) / 2
    mean = float(arr.sum() / n)
    variance = float(((arr - mean) ** 2).sum() / n)
    return {
        "min": _plain(ordered[0], numeric),
        "max": _plain(ordered[-1], numeric),
        "mean": mean,
        "median": float(median),
        "std_dev": float(np.sqrt(variance)),
        "variance": variance,
        "q1": float(ordered[int(np.floor(n * 0.25))]),
        "q3": float(ordered[int(np.floor(n * 0.75))]),
    }


def _plain(value, originals: list):
    """Return min/max as the original cell type when every cell is an int."""
    if all(isinstance(v, int) for v in originals):
        return int(value)
    return float(value)


# ---------------------------------------------------------------------------
# Categorical detection
# ---------------------------------------------------------------------------


def detect_categorical_columns(
    statistics: Iterable[ColumnStatistics],
    max_cardinality: int = 50,
    max_unique_ratio: float = 0.5,
) -> list[str]:
    """Return non-numeric columns that look categorical.

    A column qualifies when it has at most ``max_cardinality`` distinct
    values, or when its distinct/total ratio is at most ``max_unique_ratio``.
    """
    found = []
    for stats in statistics:
        if stats.type == "number":
            continue
        if stats.unique_count <= max_cardinality:
            found.append(stats.name)
        elif stats.total_count and stats.unique_count / stats.total_count <= max_unique_ratio:
            found.append(stats.name)
    return found


def get_high_cardinality_warnings(
    statistics: Iterable[ColumnStatistics], threshold: int = 50
) -> list[dict]:
    """List non-numeric columns with more than ``threshold`` distinct values."""
    return [
        {"column": stats.name, "cardinality": stats.unique_count}
        for stats in statistics
        if stats.type != "number" and stats.unique_count > threshold
    ]


def statistics_by_name(statistics: Iterable[ColumnStatistics]) -> dict[str, ColumnStatistics]:
    return {stats.name: stats for stats in statistics}
