"""Feature engineering tools (time, window, polynomial, binning, grouping, text).

All functions are purely additive: they append derived columns after the
existing ones and return ``(new_table, new_columns, log_entry)``.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from tableprep.models import (
    CleaningLogEntry,
    Table,
    cell_text,
    is_number,
    parse_datetime,
    round_half_up,
)

logger = logging.getLogger(__name__)

TIME_FEATURES = ("hour", "day", "weekday", "month", "year", "quarter", "dayofyear", "week")
ROLLING_FUNCTIONS = ("mean", "sum", "min", "max", "std")
AGGREGATIONS = ("mean", "sum", "count", "min", "max", "std")
BIN_METHODS = ("uniform", "quantile", "custom")

FeatureResult = tuple[Table, list[str], CleaningLogEntry]


def _require(table: Table, column: str) -> None:
    if column not in table.columns:
        raise ValueError(f"Column '{column}' not found in table.")


def _check_choices(kind: str, values: Iterable[str], allowed: Sequence[str]) -> None:
    for value in values:
        if value not in allowed:
            raise ValueError(f"Invalid {kind} '{value}'. Must be one of {list(allowed)}.")


def _window_aggregate(window, func: str) -> pd.Series:
    if func == "std":
        return window.std(ddof=0)
    return getattr(window, func)()


def _python_cells(series: pd.Series, places: Optional[int] = None) -> list:
    """Series values as plain cells: NaN becomes None, numbers optionally rounded."""
    cells = []
    for value in series.tolist():
        if value is None or (isinstance(value, float) and math.isnan(value)):
            cells.append(None)
        elif places is None:
            cells.append(value)
        else:
            cells.append(round_half_up(value, places))
    return cells


def _time_part(moment, feature: str) -> int:
    if feature == "hour":
        return moment.hour
    if feature == "day":
        return moment.day
    if feature == "weekday":
        return (moment.weekday() + 1) % 7
    if feature == "month":
        return moment.month
    if feature == "year":
        return moment.year
    if feature == "quarter":
        return (moment.month - 1) // 3 + 1
    day_of_year = moment.timetuple().tm_yday
    if feature == "dayofyear":
        return day_of_year
    return math.ceil(day_of_year / 7)


def extract_time_features(
    table: Table,
    column: str,
    features: Sequence[str] = ("hour", "day", "weekday", "month", "year"),
) -> FeatureResult:
    """Decompose a date/time column into ``<column>_<feature>`` columns.

    Weekday counts from Sunday (0); numbers are read as epoch milliseconds.
    Cells that cannot be parsed yield None for every feature.
    """
    _require(table, column)
    _check_choices("time feature", features, TIME_FEATURES)
    new_columns = list(dict.fromkeys(f"{column}_{feature}" for feature in features))

    rows = []
    for row in table.rows:
        moment = parse_datetime(row.get(column))
        new_row = dict(row)
        for feature in features:
            name = f"{column}_{feature}"
            new_row[name] = None if moment is None else _time_part(moment, feature)
        rows.append(new_row)

    log = CleaningLogEntry(
        operation="Time Feature Extraction",
        column=column,
        details=f"Created {len(new_columns)} time features: {', '.join(features)}",
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(new_columns)), new_columns, log


def create_rolling_features(
    table: Table,
    column: str,
    window_sizes: Sequence[int] = (3, 7),
    functions: Sequence[str] = ("mean", "std"),
) -> FeatureResult:
    """Trailing-window aggregates over row order, rounded to 3 decimals.

    Each window ends at (and includes) the current row. Only finite numeric
    cells in the window count; a window without any yields None.
    """
    _require(table, column)
    _check_choices("rolling function", functions, ROLLING_FUNCTIONS)
    for size in window_sizes:
        if int(size) < 1:
            raise ValueError(f"Invalid window size {size}. Must be a positive integer.")

    numeric = table.numeric_series(column)
    rows = [dict(row) for row in table.rows]
    new_columns = []
    for size in window_sizes:
        size = int(size)
        window = numeric.rolling(size, min_periods=1)
        for func in functions:
            name = f"{column}_rolling_{func}_{size}"
            new_columns.append(name)
            for row, cell in zip(rows, _python_cells(_window_aggregate(window, func), 3)):
                row[name] = cell

    new_columns = list(dict.fromkeys(new_columns))
    log = CleaningLogEntry(
        operation="Rolling Features",
        column=column,
        details=(
            f"Created {len(new_columns)} rolling features with windows: "
            f"{', '.join(str(int(s)) for s in window_sizes)}"
        ),
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(new_columns)), new_columns, log


def create_lag_features(table: Table, column: str, lags: Sequence[int] = (1, 2, 3)) -> FeatureResult:
    """``<column>_lag_<L>`` holds the value ``L`` rows earlier; the first ``L`` rows are None."""
    _require(table, column)
    for lag in lags:
        if int(lag) < 1:
            raise ValueError(f"Invalid lag {lag}. Must be a positive integer.")

    source = pd.Series(table.column_values(column), dtype=object)
    rows = [dict(row) for row in table.rows]
    new_columns = []
    for lag in lags:
        lag = int(lag)
        name = f"{column}_lag_{lag}"
        new_columns.append(name)
        shifted = source.shift(lag).tolist()
        for i, row in enumerate(rows):
            row[name] = shifted[i] if i >= lag else None

    new_columns = list(dict.fromkeys(new_columns))
    log = CleaningLogEntry(
        operation="Lag Features",
        column=column,
        details=f"Created {len(lags)} lag features: {', '.join(str(int(lag)) for lag in lags)}",
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(new_columns)), new_columns, log


def create_polynomial_features(
    table: Table,
    columns: Sequence[str],
    degree: int = 2,
    interaction_only: bool = False,
) -> FeatureResult:
    """Powers ``<col>_pow<d>`` for d in 2..degree and pairwise ``<a>_x_<b>`` products.

    A feature cell is only written when its inputs are numeric and the
    power fits in a float; other rows leave it absent (read as None).
    """
    for col in columns:
        _require(table, col)

    new_columns: dict[str, None] = {}
    overflowed = 0
    rows = []
    for row in table.rows:
        new_row = dict(row)
        if not interaction_only:
            for col in columns:
                value = row.get(col)
                if is_number(value):
                    for d in range(2, degree + 1):
                        name = f"{col}_pow{d}"
                        new_columns.setdefault(name, None)
                        try:
                            new_row[name] = value**d
                        except OverflowError:
                            overflowed += 1
        for i, left in enumerate(columns):
            for right in columns[i + 1:]:
                a, b = row.get(left), row.get(right)
                if is_number(a) and is_number(b):
                    name = f"{left}_x_{right}"
                    new_columns.setdefault(name, None)
                    new_row[name] = a * b
        rows.append(new_row)

    if overflowed:
        logger.warning("Polynomial features: skipped %d power(s) out of float range", overflowed)
    names = list(new_columns)
    log = CleaningLogEntry(
        operation="Polynomial Features",
        details=f"Created {len(names)} polynomial features (degree: {degree})",
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(names)), names, log


def bin_edges(values: Sequence[float], method: str, num_bins: int) -> list[float]:
    """Inner bin edges for uniform (equal-width) or quantile (equal-count) bins.

    Quantile edges pick ``sorted[floor(i / num_bins * n)]`` for i in 1..num_bins-1.
    """
    ordered = np.sort(np.asarray(values, dtype=float))
    if not len(ordered):
        return []
    steps = np.arange(1, num_bins)
    if method == "quantile":
        return ordered[(steps / num_bins * len(ordered)).astype(int)].tolist()
    low, high = ordered[0], ordered[-1]
    return (low + steps * ((high - low) / num_bins)).tolist()


def bin_numeric_feature(
    table: Table,
    column: str,
    method: str = "uniform",
    num_bins: int = 5,
    custom_edges: Optional[Sequence[float]] = None,
) -> FeatureResult:
    """Add ``<column>_binned`` holding the index of the bin each value falls in.

    The index is the number of edges a value exceeds, so indices run from 0
    to ``len(edges)``; custom edges are sorted first. Non-numeric and
    non-finite cells map to None.
    """
    _require(table, column)
    _check_choices("binning method", [method], BIN_METHODS)
    numeric = table.numeric_series(column)
    if method == "custom":
        if not custom_edges:
            raise ValueError("Custom binning requires at least one edge.")
        edges = [float(edge) for edge in custom_edges]
        num_bins = len(edges) + 1
    else:
        if num_bins < 1:
            raise ValueError(f"Invalid bin count {num_bins}. Must be a positive integer.")
        edges = bin_edges(numeric.dropna().tolist(), method, num_bins)

    name = f"{column}_binned"
    indices = np.searchsorted(np.sort(np.asarray(edges, dtype=float)), numeric.fillna(0).to_numpy())
    cells = [None if gap else int(index) for index, gap in zip(indices, numeric.isna())]
    rows = [{**row, name: cell} for row, cell in zip(table.rows, cells)]

    log = CleaningLogEntry(
        operation="Feature Binning",
        column=column,
        details=f"Created {num_bins} bins using {method} method",
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns([name])), [name], log


def create_aggregation_features(
    table: Table,
    group_column: str,
    value_column: str,
    functions: Sequence[str] = ("mean", "count"),
) -> FeatureResult:
    """Broadcast per-group aggregates of *value_column* as ``<value>_by_<group>_<func>``.

    Groups are keyed by cell text (``None`` forms its own group). A group
    without finite numeric values gets None for every function.
    """
    _require(table, group_column)
    _require(table, value_column)
    _check_choices("aggregation", functions, AGGREGATIONS)

    keys = pd.Series(
        ["null" if v is None else cell_text(v) for v in table.column_values(group_column)],
        dtype=object,
    )
    grouped = table.numeric_series(value_column).groupby(keys, sort=False)
    present = grouped.transform("count") > 0

    rows = [dict(row) for row in table.rows]
    new_columns = []
    for func in functions:
        name = f"{value_column}_by_{group_column}_{func}"
        new_columns.append(name)
        if func == "std":
            values = grouped.transform("std", ddof=0)
        else:
            values = grouped.transform(func)
        cells = _python_cells(values.where(present))
        if func == "count":
            cells = [None if c is None else int(c) for c in cells]
        for row, cell in zip(rows, cells):
            row[name] = cell

    new_columns = list(dict.fromkeys(new_columns))
    log = CleaningLogEntry(
        operation="Aggregation Features",
        column=value_column,
        details=f"Created {len(new_columns)} aggregation features grouped by {group_column}",
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(new_columns)), new_columns, log


_DIGIT = re.compile(r"[0-9]")
_UPPER = re.compile(r"[A-Z]")


def create_text_features(table: Table, column: str) -> FeatureResult:
    """Length, word, non-space character, digit and uppercase counts of a text column."""
    _require(table, column)
    suffixes = ("length", "word_count", "char_count", "digit_count", "upper_count")
    new_columns = [f"{column}_{suffix}" for suffix in suffixes]

    rows = []
    for row in table.rows:
        value = row.get(column)
        if isinstance(value, str):
            counts = [
                len(value),
                len(value.split()),
                len(re.sub(r"\s", "", value)),
                len(_DIGIT.findall(value)),
                len(_UPPER.findall(value)),
            ]
        else:
            counts = [None] * len(new_columns)
        rows.append({**row, **dict(zip(new_columns, counts))})

    log = CleaningLogEntry(
        operation="Text Features",
        column=column,
        details=f"Created {len(new_columns)} text-based features",
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(new_columns)), new_columns, log
