"""Numeric scaling and monotonic transform tools.

Scalers are learned: each one returns the fitted ``ScalerConfig`` so the
same transform, or its inverse, can be replayed on other tables with
:func:`apply_scaler` and :func:`inverse_scale`. Missing cells stay ``None``
and non-numeric cells are left untouched.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Iterable, Optional, Sequence

import numpy as np

from tableprep.models import (
    CleaningLogEntry,
    ScalerConfig,
    Table,
    cell_text,
    is_missing,
    is_number,
)

logger = logging.getLogger(__name__)

SCALING_METHODS = {"standard", "minmax", "robust"}
TRANSFORMS = {"none", "log", "sqrt", "boxcox"}

ScalingResult = tuple[Table, ScalerConfig, list[CleaningLogEntry]]


def _scope(table: Table, columns: Iterable[str], exclude: Iterable[str]) -> list[str]:
    excluded = set(exclude)
    scope = []
    for col in columns:
        if col not in table.columns:
            raise ValueError(f"Column '{col}' not found in table.")
        if col not in excluded:
            scope.append(col)
    return scope


def _numeric(table: Table, column: str) -> np.ndarray:
    return np.asarray([v for v in table.column_values(column) if is_number(v)], dtype=float)


def _map_numeric(
    table: Table, params: dict[str, dict[str, float]], fn: Callable[[float, dict], float]
) -> Table:
    rows = []
    for row in table.rows:
        new_row = dict(row)
        for col, p in params.items():
            value = row.get(col)
            if is_number(value):
                new_row[col] = float(fn(value, p))
            elif is_missing(value):
                new_row[col] = None
        rows.append(new_row)
    return table.with_rows(rows)


def _fmt(value: float) -> str:
    return cell_text(float(value))


# ---------------------------------------------------------------------------
# Fitting
# ---------------------------------------------------------------------------


def _standard_params(values: np.ndarray) -> dict[str, float]:
    mean = float(values.sum() / len(values))
    std = math.sqrt(float(((values - mean) ** 2).sum() / len(values)))
    return {"mean": mean, "std": std or 1.0}


def _minmax_params(values: np.ndarray) -> dict[str, float]:
    return {"min": float(values.min()), "max": float(values.max())}


def _robust_params(values: np.ndarray) -> dict[str, float]:
    ordered = np.sort(values)
    n = len(ordered)
    mid = n // 2
    median = ordered[mid] if n % 2 else (ordered[mid - 1] + ordered[mid]) / 2
    iqr = float(ordered[int(n * 0.75)] - ordered[int(n * 0.25)])
    return {"median": float(median), "iqr": iqr or 1.0}


_FITTERS = {
    "standard": _standard_params,
    "minmax": _minmax_params,
    "robust": _robust_params,
}


def _forward(scaler: ScalerConfig) -> Callable[[float, dict], float]:
    if scaler.method == "standard":
        return lambda x, p: (x - p["mean"]) / p["std"]
    if scaler.method == "robust":
        return lambda x, p: (x - p["median"]) / p["iqr"]
    low, high = scaler.feature_range

    def minmax(x: float, p: dict) -> float:
        spread = p["max"] - p["min"] or 1.0
        return (x - p["min"]) / spread * (high - low) + low

    return minmax


def _inverse(scaler: ScalerConfig) -> Callable[[float, dict], float]:
    if scaler.method == "standard":
        return lambda x, p: x * p["std"] + p["mean"]
    if scaler.method == "robust":
        return lambda x, p: x * p["iqr"] + p["median"]
    low, high = scaler.feature_range

    def minmax(x: float, p: dict) -> float:
        spread = p["max"] - p["min"] or 1.0
        width = (high - low) or 1.0
        return (x - low) / width * spread + p["min"]

    return minmax


_DESCRIPTIONS = {
    "standard": ("Standard Scaling", "using StandardScaler (z-score)"),
    "minmax": ("Min-Max Scaling", None),
    "robust": ("Robust Scaling", "using RobustScaler (median/IQR)"),
}


def scale_columns(
    table: Table,
    columns: Sequence[str],
    method: str = "standard",
    exclude_columns: Iterable[str] = (),
    feature_range: tuple[float, float] = (0.0, 1.0),
) -> ScalingResult:
    """Fit a scaler on *columns* and apply it.

    Args:
        table: Input table.
        columns: Candidate columns; those with no numeric cells are skipped.
        method: 'standard', 'minmax' or 'robust'.
        exclude_columns: Columns never scaled (e.g. the target).
        feature_range: Output range for 'minmax'.

    Returns:
        Tuple of (scaled table, fitted scaler, log entries).

    Raises:
        ValueError: If the method or a column is invalid.
    """
    if method not in SCALING_METHODS:
        raise ValueError(
            f"Invalid scaling method '{method}'. Must be one of {sorted(SCALING_METHODS)}."
        )
    scope = _scope(table, columns, exclude_columns)
    params = {}
    for col in scope:
        values = _numeric(table, col)
        if len(values):
            params[col] = _FITTERS[method](values)

    scaler = ScalerConfig(
        method=method,
        columns=list(params),
        params=params,
        feature_range=(float(feature_range[0]), float(feature_range[1])),
    )
    if not params:
        return table, scaler, []

    result = _map_numeric(table, params, _forward(scaler))
    operation, how = _DESCRIPTIONS[method]
    if how is None:
        how = f"to range [{_fmt(feature_range[0])}, {_fmt(feature_range[1])}]"
    log = CleaningLogEntry(
        operation=operation,
        details=f"Scaled {len(params)} columns {how}",
        rows_affected=len(table),
        category="transformation",
    )
    return result, scaler, [log]


def standard_scale(table: Table, columns: Sequence[str], exclude_columns: Iterable[str] = ()):
    """``(x - mean) / std`` with population std; a zero std counts as 1."""
    return scale_columns(table, columns, "standard", exclude_columns)


def min_max_scale(
    table: Table,
    columns: Sequence[str],
    exclude_columns: Iterable[str] = (),
    feature_range: tuple[float, float] = (0.0, 1.0),
):
    return scale_columns(table, columns, "minmax", exclude_columns, feature_range)


def robust_scale(table: Table, columns: Sequence[str], exclude_columns: Iterable[str] = ()):
    """``(x - median) / IQR`` using the floor-index quartiles; a zero IQR counts as 1."""
    return scale_columns(table, columns, "robust", exclude_columns)


def apply_scaler(table: Table, scaler: ScalerConfig) -> Table:
    """Replay a fitted scaler on another table."""
    params = {c: p for c, p in scaler.params.items() if c in table.columns}
    return _map_numeric(table, params, _forward(scaler))


def inverse_scale(table: Table, scaler: ScalerConfig) -> Table:
    """Undo a fitted scaler."""
    params = {c: p for c, p in scaler.params.items() if c in table.columns}
    return _map_numeric(table, params, _inverse(scaler))


# ---------------------------------------------------------------------------
# Monotonic transforms
# ---------------------------------------------------------------------------


def _transform(
    table: Table,
    columns: Sequence[str],
    accept: Callable[[float], bool],
    fn: Callable[[float], float],
) -> tuple[Table, int]:
    scope = _scope(table, columns, ())
    changed = 0
    rows = []
    for row in table.rows:
        new_row = row
        for col in scope:
            value = row.get(col)
            if is_number(value) and accept(value):
                try:
                    transformed = fn(value)
                except OverflowError:
                    logger.debug("Transform of %r in column %r overflowed; left as is", value, col)
                    continue
                if new_row is row:
                    new_row = dict(row)
                new_row[col] = transformed
                changed += 1
            elif is_missing(value) and value is not None:
                if new_row is row:
                    new_row = dict(row)
                new_row[col] = None
        rows.append(new_row)
    return table.with_rows(rows), changed


def log_transform(
    table: Table, columns: Sequence[str], offset: float = 1.0
) -> tuple[Table, list[CleaningLogEntry]]:
    """``ln(x + offset)`` where ``x + offset > 0``; other cells are left as is."""
    result, changed = _transform(
        table, columns, lambda x: x + offset > 0, lambda x: math.log(x + offset)
    )
    if not changed:
        return result, []
    return result, [
        CleaningLogEntry(
            operation="Log Transform",
            details=f"Applied log transform to {len(columns)} columns with offset {_fmt(offset)}",
            rows_affected=changed,
            category="transformation",
        )
    ]


def sqrt_transform(table: Table, columns: Sequence[str]) -> tuple[Table, list[CleaningLogEntry]]:
    result, changed = _transform(table, columns, lambda x: x >= 0, math.sqrt)
    if not changed:
        return result, []
    return result, [
        CleaningLogEntry(
            operation="Square Root Transform",
            details=f"Applied sqrt transform to {len(columns)} columns",
            rows_affected=changed,
            category="transformation",
        )
    ]


def box_cox_transform(
    table: Table, columns: Sequence[str], lam: float = 0.5
) -> tuple[Table, list[CleaningLogEntry]]:
    """Simplified Box-Cox with a fixed lambda, for ``x > 0`` only."""
    if lam == 0:
        fn = math.log
    else:
        fn = lambda x: (x**lam - 1) / lam  # noqa: E731
    result, changed = _transform(table, columns, lambda x: x > 0, fn)
    if not changed:
        return result, []
    return result, [
        CleaningLogEntry(
            operation="Box-Cox Transform",
            details=f"Applied Box-Cox transform (lambda={_fmt(lam)}) to {len(columns)} columns",
            rows_affected=changed,
            category="transformation",
        )
    ]


def apply_transform(
    table: Table,
    columns: Sequence[str],
    transform: str,
    offset: float = 1.0,
    lam: float = 0.5,
) -> tuple[Table, list[CleaningLogEntry]]:
    """Dispatch to the transform named by *transform* ('none' is a no-op)."""
    if transform not in TRANSFORMS:
        raise ValueError(
            f"Invalid transform '{transform}'. Must be one of {sorted(TRANSFORMS)}."
        )
    if transform == "log":
        return log_transform(table, columns, offset)
    if transform == "sqrt":
        return sqrt_transform(table, columns)
    if transform == "boxcox":
        return box_cox_transform(table, columns, lam)
    return table, []


def numeric_columns(table: Table, exclude: Optional[Iterable[str]] = None) -> list[str]:
    """Columns whose non-missing cells are all numbers (at least one)."""
    excluded = set(exclude or ())
    found = []
    for col in table.columns:
        if col in excluded:
            continue
        present = [v for v in table.column_values(col) if not is_missing(v)]
        if present and all(is_number(v) for v in present):
            found.append(col)
    return found
