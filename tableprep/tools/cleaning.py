"""Cleaning tools for the dataset-preparation pipeline.

Each function takes a Table (plus statistics and parameters where needed),
performs one cleaning operation, and returns a tuple of
``(new_table, log_entries)``. Inputs are never modified; an operation that
changes nothing returns an equal table and no log entries.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

import pandas as pd

from tableprep.models import (
    CleaningLogEntry,
    ColumnStatistics,
    Table,
    YieldPoint,
    cell_key,
    cell_text,
    is_finite_number,
    is_missing,
    is_number,
    parse_datetime,
    plural,
    round_half_up,
    strict_equal,
)

logger = logging.getLogger(__name__)

CleaningResult = tuple[Table, list[CleaningLogEntry]]

_NEAR_DUPLICATE_YIELD_EVERY = 500


def _columns_in_scope(table: Table, columns: Optional[Iterable[str]]) -> list[str]:
    """Resolve an optional column list against the table, rejecting unknowns."""
    if columns is None:
        return list(table.columns)
    resolved = list(columns)
    for col in resolved:
        if col not in table.columns:
            raise ValueError(f"Column '{col}' not found in table.")
    return resolved


def _stats_lookup(statistics: Iterable[ColumnStatistics]) -> dict[str, ColumnStatistics]:
    return {s.name: s for s in statistics}


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------


def _typed_key(value: Any) -> str:
    """``cell_key`` flattened to one string so pandas can hash it (``1`` vs ``"1"`` differ)."""
    kind, text = cell_key(value)
    return f"{kind}:{text}"


def remove_duplicates(table: Table, columns: Optional[Sequence[str]] = None) -> CleaningResult:
    """Drop rows whose values match an earlier row on every given column.

    The first occurrence is kept and survivors stay in their original order.
    """
    scope = _columns_in_scope(table, columns)
    if not scope:
        kept = list(table.rows[:1])
    else:
        keys = pd.DataFrame(
            {col: [_typed_key(row.get(col)) for row in table.rows] for col in scope}
        )
        unique = ~keys.duplicated(keep="first")
        kept = [row for row, keep in zip(table.rows, unique) if keep]

    removed = len(table) - len(kept)
    logs = []
    if removed:
        logs.append(
            CleaningLogEntry(
                operation="Remove Duplicates",
                details=f"Removed {plural(removed, 'exact duplicate row')}",
                rows_affected=removed,
            )
        )
    return table.with_rows(kept), logs


def string_similarity(left: str, right: str) -> float:
    """Share of the shorter string's characters found in the longer one."""
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    longer, shorter = (left, right) if len(left) > len(right) else (right, left)
    matches = sum(1 for ch in shorter if ch in longer)
    return matches / len(longer)


def row_similarity(first: dict, second: dict, columns: Sequence[str]) -> float:
    """Column-average of per-field match scores, in ``[0, 1]``."""
    if not columns:
        return 1.0
    score = 0.0
    for col in columns:
        a, b = first.get(col), second.get(col)
        if strict_equal(a, b):
            score += 1
        elif is_number(a) and is_number(b):
            spread = max(abs(a), abs(b), 1)
            if abs(a - b) / spread < 0.01:
                score += 0.9
        elif isinstance(a, str) and isinstance(b, str):
            score += string_similarity(a.lower(), b.lower())
    return score / len(columns)


def remove_near_duplicates(
    table: Table,
    columns: Optional[Sequence[str]] = None,
    tolerance: float = 0.9,
    yield_point: Optional[YieldPoint] = None,
) -> CleaningResult:
    """Greedily drop rows that are similar to an already accepted row.

    Rows are visited in order and compared against every row kept so far;
    a row is dropped when any similarity reaches ``tolerance``.
    """
    if not 0 <= tolerance <= 1:
        raise ValueError(f"Invalid tolerance {tolerance}. Must be within [0, 1].")
    scope = _columns_in_scope(table, columns)

    accepted: list[dict] = []
    removed = 0
    for index, row in enumerate(table.rows):
        if yield_point is not None and index and index % _NEAR_DUPLICATE_YIELD_EVERY == 0:
            yield_point("near_duplicates")
        if any(row_similarity(row, other, scope) >= tolerance for other in accepted):
            removed += 1
        else:
            accepted.append(row)

    logs = []
    if removed:
        logs.append(
            CleaningLogEntry(
                operation="Remove Near-Duplicates",
                details=(
                    f"Removed {plural(removed, 'near-duplicate row')} "
                    f"(tolerance: {round_half_up(tolerance * 100):.0f}%)"
                ),
                rows_affected=removed,
            )
        )
    return table.with_rows(accepted), logs


# ---------------------------------------------------------------------------
# Missing values
# ---------------------------------------------------------------------------


MISSING_STRATEGIES = {"remove", "mean", "median", "mode", "forward", "backward", "constant"}


def handle_missing_values(
    table: Table,
    statistics: Iterable[ColumnStatistics],
    strategy: str,
    columns: Optional[Sequence[str]] = None,
    constant: Any = None,
    threshold: Optional[float] = None,
    target: str = "rows",
) -> CleaningResult:
    """Remove or fill missing cells using the given strategy.

    Args:
        table: Input table.
        statistics: Column statistics computed on ``table``; used by the
            mean/median/mode strategies.
        strategy: One of 'remove', 'mean', 'median', 'mode', 'forward',
            'backward', 'constant'.
        columns: Columns in scope (default: all). With ``strategy='remove'``
            and ``target='columns'`` this is the explicit list of columns to
            drop.
        constant: Fill value for the 'constant' strategy.
        threshold: Fraction in ``[0, 1]`` for 'remove'. Rows are kept while
            their missing fraction is at most ``threshold``; columns are
            dropped when their missing percentage exceeds ``threshold*100``.
            ``None`` means any missing cell triggers removal.
        target: 'rows' or 'columns', only used by 'remove'.

    Returns:
        Tuple of (new table, log entries).

    Raises:
        ValueError: If the strategy, target or a column is invalid.
    """
    if strategy not in MISSING_STRATEGIES:
        raise ValueError(
            f"Invalid strategy '{strategy}'. Must be one of {sorted(MISSING_STRATEGIES)}."
        )
    if target not in ("rows", "columns"):
        raise ValueError(f"Invalid target '{target}'. Must be one of ['columns', 'rows'].")

    if strategy == "remove":
        if target == "columns":
            return _remove_missing_columns(table, statistics, columns, threshold)
        return _remove_missing_rows(table, _columns_in_scope(table, columns), threshold)

    scope = _columns_in_scope(table, columns)
    if strategy in ("forward", "backward"):
        return _propagate_fill(table, scope, strategy)
    return _statistic_fill(table, statistics, scope, strategy, constant)


def _remove_missing_rows(
    table: Table, scope: list[str], threshold: Optional[float]
) -> CleaningResult:
    def keep(row: dict) -> bool:
        missing = sum(1 for col in scope if is_missing(row.get(col)))
        if threshold is None:
            return missing == 0
        return not scope or missing / len(scope) <= threshold

    kept = [row for row in table.rows if keep(row)]
    removed = len(table) - len(kept)
    logs = []
    if removed:
        logs.append(
            CleaningLogEntry(
                operation="Remove Missing Values",
                details=f"Removed {plural(removed, 'row')} with missing values",
                rows_affected=removed,
            )
        )
    return table.with_rows(kept), logs


def _remove_missing_columns(
    table: Table,
    statistics: Iterable[ColumnStatistics],
    columns: Optional[Sequence[str]],
    threshold: Optional[float],
) -> CleaningResult:
    if columns:
        to_drop = _columns_in_scope(table, columns)
    else:
        lookup = _stats_lookup(statistics)
        to_drop = []
        for col in table.columns:
            stats = lookup.get(col)
            if stats is None:
                continue
            if threshold is None:
                if stats.missing_count > 0:
                    to_drop.append(col)
            elif stats.missing_percentage > threshold * 100:
                to_drop.append(col)

    if not to_drop:
        return table, []
    log = CleaningLogEntry(
        operation="Remove Missing Columns",
        details=(
            f"Dropped {plural(len(to_drop), 'column')} with missing values: "
            f"{', '.join(to_drop)}"
        ),
        rows_affected=len(table),
    )
    return table.drop(to_drop), [log]


def _propagate_fill(table: Table, scope: list[str], strategy: str) -> CleaningResult:
    rows = [dict(row) for row in table.rows]
    label = "Forward Fill" if strategy == "forward" else "Backward Fill"
    logs = []
    for col in scope:
        values = table.column_values(col)
        missing = pd.Series([is_missing(v) for v in values], dtype=bool)
        # Row positions are propagated, so NaN cells count as present.
        positions = pd.Series(range(len(values)), dtype=float).mask(missing)
        source = positions.ffill() if strategy == "forward" else positions.bfill()
        filled = 0
        for i, position in enumerate(source):
            if missing.iloc[i] and not pd.isna(position):
                rows[i][col] = values[int(position)]
                filled += 1
        if filled:
            logs.append(
                CleaningLogEntry(
                    operation=label,
                    column=col,
                    details=f"Filled {plural(filled, 'missing value')}",
                    rows_affected=filled,
                )
            )
    if not logs:
        return table, []
    return table.with_rows(rows), logs


def _fill_value(stats: ColumnStatistics, strategy: str, constant: Any) -> Any:
    if strategy == "constant":
        return constant
    if strategy == "mode":
        return stats.mode
    if stats.type != "number":
        return None
    if strategy == "mean" and is_finite_number(stats.mean):
        return round_half_up(stats.mean, 2)
    if strategy == "median" and is_finite_number(stats.median):
        return stats.median
    return None


def _statistic_fill(
    table: Table,
    statistics: Iterable[ColumnStatistics],
    scope: list[str],
    strategy: str,
    constant: Any,
) -> CleaningResult:
    lookup = _stats_lookup(statistics)
    rows = list(table.rows)
    logs = []
    for col in scope:
        stats = lookup.get(col)
        if stats is None:
            logger.debug("No statistics for column %r; skipping %s fill", col, strategy)
            continue
        fill = _fill_value(stats, strategy, constant)
        if is_missing(fill):
            logger.debug("Skipping column %r: %s fill value is empty", col, strategy)
            continue

        filled = 0
        for i, row in enumerate(rows):
            if is_missing(row.get(col)):
                rows[i] = {**row, col: fill}
                filled += 1
        if filled:
            logs.append(
                CleaningLogEntry(
                    operation="Fill Missing Values",
                    column=col,
                    details=f"Filled {plural(filled, 'value')} with {strategy} ({cell_text(fill)})",
                    rows_affected=filled,
                )
            )
    if not logs:
        return table, []
    return table.with_rows(rows), logs


# ---------------------------------------------------------------------------
# Text normalization
# ---------------------------------------------------------------------------


_WHITESPACE = re.compile(r"\s+")
_WORD_START = re.compile(r"\b\w", re.ASCII)
_SENTENCE_START = re.compile(r"(^\w|[.!?]\s+\w)")

CASE_TYPES = {"lower", "upper", "title", "sentence"}


def _map_string_cells(
    table: Table, scope: list[str], transform: Callable[[str], str]
) -> tuple[Table, int]:
    changed = 0
    rows = []
    for row in table.rows:
        new_row = row
        for col in scope:
            value = row.get(col)
            if not isinstance(value, str):
                continue
            updated = transform(value)
            if updated != value:
                if new_row is row:
                    new_row = dict(row)
                new_row[col] = updated
                changed += 1
        rows.append(new_row)
    if not changed:
        return table, 0
    return table.with_rows(rows), changed


def trim_whitespace(table: Table, columns: Optional[Sequence[str]] = None) -> CleaningResult:
    """Strip string cells and collapse internal whitespace runs to one space."""
    scope = _columns_in_scope(table, columns)
    result, changed = _map_string_cells(
        table, scope, lambda s: _WHITESPACE.sub(" ", s.strip())
    )
    logs = []
    if changed:
        logs.append(
            CleaningLogEntry(
                operation="Trim Whitespace",
                details=f"Trimmed whitespace in {plural(changed, 'cell')}",
                rows_affected=changed,
            )
        )
    return result, logs


def change_case(value: str, case_type: str) -> str:
    if case_type == "lower":
        return value.lower()
    if case_type == "upper":
        return value.upper()
    if case_type == "title":
        return _WORD_START.sub(lambda m: m.group().upper(), value.lower())
    return _SENTENCE_START.sub(lambda m: m.group().upper(), value.lower())


def standardize_case(
    table: Table, columns: Optional[Sequence[str]] = None, case_type: str = "lower"
) -> CleaningResult:
    """Apply lower/upper/title/sentence case to every string cell in scope."""
    if case_type not in CASE_TYPES:
        raise ValueError(
            f"Invalid case type '{case_type}'. Must be one of {sorted(CASE_TYPES)}."
        )
    scope = _columns_in_scope(table, columns)
    result, changed = _map_string_cells(table, scope, lambda s: change_case(s, case_type))
    logs = []
    if changed:
        logs.append(
            CleaningLogEntry(
                operation="Standardize Case",
                details=f"Converted {plural(changed, 'value')} to {case_type} case",
                rows_affected=changed,
            )
        )
    return result, logs


def normalize_column_name(name: str) -> str:
    """``"  Total Sales ($) "`` becomes ``"total_sales"``."""
    normalized = _WHITESPACE.sub("_", name.strip().lower())
    normalized = re.sub(r"[^a-z0-9_]", "", normalized)
    normalized = re.sub(r"^_+|_+$", "", normalized)
    return re.sub(r"_+", "_", normalized)


def normalize_column_names(table: Table) -> tuple[Table, dict[str, str], list[CleaningLogEntry]]:
    """Rename every column to a normalized identifier and rekey the rows.

    Names that normalize to nothing become ``column_<position>``; collisions
    get a numeric suffix so the mapping stays one-to-one.

    Returns:
        Tuple of (renamed table, old-name -> new-name mapping, log entries).
    """
    mapping: dict[str, str] = {}
    used: set[str] = set()
    for position, col in enumerate(table.columns, start=1):
        candidate = normalize_column_name(col) or f"column_{position}"
        base, suffix = candidate, 2
        while candidate in used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        used.add(candidate)
        mapping[col] = candidate

    changed = sum(1 for old, new in mapping.items() if old != new)
    if not changed:
        return table, mapping, []
    log = CleaningLogEntry(
        operation="Normalize Column Names",
        details=f"Normalized {plural(changed, 'column name')}",
        rows_affected=changed,
    )
    return table.rename(mapping), mapping, [log]


# ---------------------------------------------------------------------------
# Type conversion
# ---------------------------------------------------------------------------


_NUMBER_PREFIX = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_TRUE_WORDS = {"true", "1", "yes", "y"}
_FALSE_WORDS = {"false", "0", "no", "n"}
CONVERSION_TYPES = {"number", "string", "date", "boolean"}


def _convert_cell(value: Any, target_type: str) -> tuple[Any, Optional[bool]]:
    """Return (new value, converted?) where ``None`` means already that type."""
    if target_type == "number":
        if is_number(value):
            return value, None
        match = _NUMBER_PREFIX.match(re.sub(r"[^0-9.\-]", "", cell_text(value)))
        if match is None:
            return value, False
        return float(match.group()), True
    if target_type == "string":
        if isinstance(value, str):
            return value, None
        return cell_text(value), True
    if target_type == "date":
        if isinstance(value, datetime):
            return value, None
        parsed = parse_datetime(value)
        return (value, False) if parsed is None else (parsed, True)
    if isinstance(value, bool):
        return value, None
    word = cell_text(value).lower()
    if word in _TRUE_WORDS:
        return True, True
    if word in _FALSE_WORDS:
        return False, True
    return value, False


def convert_data_types(table: Table, conversions: dict[str, str]) -> CleaningResult:
    """Convert columns to number/string/date/boolean cell by cell.

    Cells that cannot be converted are left unchanged and counted as
    failures in the log entry.
    """
    for col, target_type in conversions.items():
        if col not in table.columns:
            raise ValueError(f"Column '{col}' not found in table.")
        if target_type not in CONVERSION_TYPES:
            raise ValueError(
                f"Invalid target type '{target_type}'. Must be one of {sorted(CONVERSION_TYPES)}."
            )

    rows = [dict(row) for row in table.rows]
    logs = []
    for col, target_type in conversions.items():
        converted = failed = 0
        for row in rows:
            value = row.get(col)
            if is_missing(value):
                continue
            new_value, ok = _convert_cell(value, target_type)
            if ok is True:
                row[col] = new_value
                converted += 1
            elif ok is False:
                failed += 1
        if converted:
            suffix = f" ({failed} failed)" if failed else ""
            logs.append(
                CleaningLogEntry(
                    operation="Convert Data Type",
                    column=col,
                    details=f"Converted {plural(converted, 'value')} to {target_type}{suffix}",
                    rows_affected=converted,
                    category="transformation",
                )
            )
    if not logs:
        return table, []
    return table.with_rows(rows), logs


# ---------------------------------------------------------------------------
# Outliers
# ---------------------------------------------------------------------------


OUTLIER_METHODS = {"iqr", "zscore", "percentile"}
OUTLIER_TREATMENTS = {"cap", "remove", "replace", "flag"}
_TREATMENT_LABELS = {
    "remove": ("Removal", "Removed"),
    "cap": ("Capping", "Capped"),
    "flag": ("Flagging", "Flagged"),
    "replace": ("Replacement", "Replaced"),
}


def outlier_bounds(
    stats: ColumnStatistics, method: str, threshold: float
) -> Optional[tuple[float, float]]:
    """Return ``(lower, upper)`` bounds for a numeric column, or None."""
    if stats.type != "number":
        return None
    if method == "iqr" and stats.q1 is not None and stats.q3 is not None:
        iqr = stats.q3 - stats.q1
        return stats.q1 - threshold * iqr, stats.q3 + threshold * iqr
    if method == "zscore" and stats.mean is not None and stats.std_dev is not None:
        return stats.mean - threshold * stats.std_dev, stats.mean + threshold * stats.std_dev
    if method == "percentile" and stats.min is not None and stats.max is not None:
        spread = stats.max - stats.min
        return stats.min + threshold / 100 * spread, stats.max - threshold / 100 * spread
    return None


def remove_outliers(
    table: Table,
    statistics: Iterable[ColumnStatistics],
    method: str = "iqr",
    treatment: str = "remove",
    threshold: float = 1.5,
    columns: Optional[Sequence[str]] = None,
    replacement: str = "median",
) -> CleaningResult:
    """Treat out-of-bounds numeric values, one column at a time.

    Args:
        table: Input table.
        statistics: Column statistics computed on ``table``.
        method: 'iqr', 'zscore' or 'percentile'.
        treatment: 'remove' drops rows, 'cap' clamps to the nearest bound,
            'replace' substitutes the median (or mean), 'flag' adds a
            boolean ``<col>_is_outlier`` column.
        threshold: Positive multiplier (IQR/z-score) or percentage
            (percentile).
        columns: Columns in scope (default: all numeric columns).
        replacement: 'median' or 'mean' for the 'replace' treatment; the
            other statistic is the fallback.

    Raises:
        ValueError: If the method, treatment, threshold or a column is invalid.
    """
    if method not in OUTLIER_METHODS:
        raise ValueError(f"Invalid method '{method}'. Must be one of {sorted(OUTLIER_METHODS)}.")
    if treatment not in OUTLIER_TREATMENTS:
        raise ValueError(
            f"Invalid treatment '{treatment}'. Must be one of {sorted(OUTLIER_TREATMENTS)}."
        )
    if not isinstance(threshold, (int, float)) or threshold <= 0 or math.isnan(threshold):
        raise ValueError(f"Invalid threshold {threshold!r}. Must be a positive number.")

    scope = _columns_in_scope(table, columns)
    lookup = _stats_lookup(statistics)
    result = table
    logs = []

    for col in scope:
        stats = lookup.get(col)
        bounds = outlier_bounds(stats, method, threshold) if stats else None
        if bounds is None:
            continue
        lower, upper = bounds

        def outside(value: Any) -> bool:
            return is_number(value) and (value < lower or value > upper)

        count = 0
        if treatment == "remove":
            kept = [row for row in result.rows if not outside(row.get(col))]
            count = len(result) - len(kept)
            result = result.with_rows(kept)
        elif treatment == "flag":
            flag_col = f"{col}_is_outlier"
            rows = []
            for row in result.rows:
                flagged = outside(row.get(col))
                count += flagged
                rows.append({**row, flag_col: flagged})
            result = result.with_rows(rows, result.insert_columns([flag_col]))
        else:
            substitute = None
            if treatment == "replace":
                primary, fallback = (
                    (stats.median, stats.mean) if replacement == "median" else (stats.mean, stats.median)
                )
                substitute = primary if primary is not None else fallback
                if substitute is None:
                    substitute = 0
            rows = []
            for row in result.rows:
                value = row.get(col)
                if outside(value):
                    count += 1
                    if treatment == "cap":
                        new_value = lower if value < lower else upper
                    else:
                        new_value = substitute
                    row = {**row, col: new_value}
                rows.append(row)
            if count:
                result = result.with_rows(rows)

        if count:
            noun, verb = _TREATMENT_LABELS[treatment]
            logs.append(
                CleaningLogEntry(
                    operation=f"Outlier {noun}",
                    column=col,
                    details=(
                        f"{verb} {plural(count, 'outlier')} using {method.upper()} "
                        f"(threshold: {cell_text(float(threshold))})"
                    ),
                    rows_affected=count,
                )
            )
    return result, logs


# ---------------------------------------------------------------------------
# Column pruning
# ---------------------------------------------------------------------------


def drop_high_missing_columns(
    table: Table, statistics: Iterable[ColumnStatistics], threshold: float = 50.0
) -> CleaningResult:
    """Drop columns whose missing percentage exceeds ``threshold`` (0-100)."""
    to_drop = [
        s.name
        for s in statistics
        if s.name in table.columns and s.missing_percentage > threshold
    ]
    if not to_drop:
        return table, []
    log = CleaningLogEntry(
        operation="Drop High-Missing Columns",
        details=(
            f"Dropped {plural(len(to_drop), 'column')} with >{cell_text(float(threshold))}% "
            f"missing values: {', '.join(to_drop)}"
        ),
        rows_affected=len(table),
    )
    return table.drop(to_drop), [log]


def remove_low_variance_features(
    table: Table, statistics: Iterable[ColumnStatistics], threshold: float = 0.01
) -> CleaningResult:
    """Drop numeric columns with variance below ``threshold`` and constant columns."""
    to_drop = []
    for stats in statistics:
        if stats.name not in table.columns:
            continue
        if stats.type == "number" and stats.variance is not None:
            if stats.variance < threshold:
                to_drop.append(stats.name)
        elif stats.unique_count <= 1:
            to_drop.append(stats.name)
    if not to_drop:
        return table, []
    log = CleaningLogEntry(
        operation="Remove Low-Variance Features",
        details=f"Removed {plural(len(to_drop), 'low-variance feature')}: {', '.join(to_drop)}",
        rows_affected=len(table),
        category="feature",
    )
    return table.drop(to_drop), [log]


def _is_nan_like(row: dict, col: str) -> bool:
    if col not in row:
        return True
    value = row[col]
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.lower() in ("nan", "undefined")


def clean_nan_values(table: Table, columns: Optional[Sequence[str]] = None) -> CleaningResult:
    """Turn NaN numbers, absent cells and 'nan'/'undefined' strings into None."""
    scope = _columns_in_scope(table, columns)
    cleaned = 0
    rows = []
    for row in table.rows:
        bad = [col for col in scope if _is_nan_like(row, col)]
        if bad:
            row = {**row, **{col: None for col in bad}}
            cleaned += len(bad)
        rows.append(row)
    if not cleaned:
        return table, []
    log = CleaningLogEntry(
        operation="Clean NaN Values",
        details=f"Converted {plural(cleaned, 'NaN/undefined value')} to null",
        rows_affected=cleaned,
    )
    return table.with_rows(rows), [log]


def remove_all_null_columns(table: Table, threshold: float = 1.0) -> CleaningResult:
    """Drop columns whose null-or-empty fraction is at least ``threshold``.

    An empty table keeps its columns.
    """
    if not len(table):
        return table, []
    to_drop = []
    for col in table.columns:
        nulls = sum(1 for value in table.column_values(col) if is_missing(value))
        if nulls / len(table) >= threshold:
            to_drop.append(col)
    if not to_drop:
        return table, []
    share = "all" if threshold >= 1.0 else f"{round_half_up(threshold * 100):.0f}%+"
    log = CleaningLogEntry(
        operation="Remove All-Null Columns",
        details=(
            f"Removed {plural(len(to_drop), 'column')} with {share} null values: "
            f"{', '.join(to_drop)}"
        ),
        rows_affected=len(table),
    )
    return table.drop(to_drop), [log]
