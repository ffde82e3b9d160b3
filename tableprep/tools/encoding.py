"""Categorical encoding tools.

Every encoder returns ``(new_table, encoder, log_entry)``. The returned
``EncoderConfig`` holds everything needed to replay the same mapping on new
data through :func:`apply_encoder`. Category order is the lexicographic
order of the canonical cell text, so identical input always yields identical
output.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import pandas as pd

from tableprep.models import (
    CleaningLogEntry,
    EncoderConfig,
    Table,
    cell_text,
    is_missing,
    is_number,
)

logger = logging.getLogger(__name__)

ENCODING_METHODS = {"onehot", "label", "frequency", "target", "binary"}

EncodingResult = tuple[Table, EncoderConfig, CleaningLogEntry]


def _require(table: Table, column: str) -> None:
    if column not in table.columns:
        raise ValueError(f"Column '{column}' not found in table.")


def _categories(table: Table, column: str) -> list[str]:
    return sorted({cell_text(v) for v in table.column_values(column) if not is_missing(v)})


def _key(value) -> Optional[str]:
    return None if is_missing(value) else cell_text(value)


def _derived_names(table: Table, column: str, names: list[str]) -> list[str]:
    """Suffix ``_2``, ``_3``... onto names already used by another column of *table*."""
    taken = set(table.columns) - {column}
    result = []
    for name in names:
        candidate, suffix = name, 2
        while candidate in taken:
            candidate = f"{name}_{suffix}"
            suffix += 1
        if candidate != name:
            logger.warning("Encoded column %r already exists; writing %r instead", name, candidate)
        taken.add(candidate)
        result.append(candidate)
    return result


def _replace_with(
    table: Table, column: str, new_columns: list[str], encode
) -> Table:
    """Swap *column* for *new_columns* in place, filling them via ``encode(value)``."""
    rows = []
    for row in table.rows:
        values = encode(row.get(column))
        new_row = {k: v for k, v in row.items() if k != column}
        new_row.update(zip(new_columns, values))
        rows.append(new_row)
    return table.with_rows(rows, table.replace_column(column, new_columns))


def _map_in_place(table: Table, column: str, encode) -> Table:
    return table.with_rows([{**row, column: encode(row.get(column))} for row in table.rows])


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def one_hot_encode(table: Table, column: str, drop_first: bool = False) -> EncodingResult:
    """Replace *column* with one 0/1 indicator column per category.

    Missing or unseen values produce an all-zero row.
    """
    _require(table, column)
    categories = _categories(table, column)
    encoded = categories[1:] if drop_first else categories
    new_columns = _derived_names(table, column, [f"{column}_{cat}" for cat in encoded])
    encoder = EncoderConfig(
        method="onehot", column=column, categories=categories, new_columns=new_columns
    )
    result = _replace_with(
        table, column, new_columns, lambda v: [int(_key(v) == cat) for cat in encoded]
    )
    log = CleaningLogEntry(
        operation="One-Hot Encoding",
        column=column,
        details=f"Created {len(new_columns)} binary columns from {len(categories)} categories",
        rows_affected=len(table),
        category="encoding",
    )
    return result, encoder, log


def label_encode(table: Table, column: str) -> EncodingResult:
    """Map each category to its 0-based sorted index; missing stays None."""
    _require(table, column)
    categories = _categories(table, column)
    mapping = {cat: i for i, cat in enumerate(categories)}
    encoder = EncoderConfig(method="label", column=column, categories=categories, mapping=mapping)
    result = _map_in_place(table, column, lambda v: mapping.get(_key(v)))
    log = CleaningLogEntry(
        operation="Label Encoding",
        column=column,
        details=f"Encoded {len(categories)} categories to integers (0-{len(categories) - 1})",
        rows_affected=len(table),
        category="encoding",
    )
    return result, encoder, log


def frequency_encode(table: Table, column: str) -> EncodingResult:
    """Map each category to its share of all rows; missing stays None."""
    _require(table, column)
    keys = pd.Series([_key(v) for v in table.column_values(column)], dtype=object)
    counts = keys.value_counts(dropna=True)
    total = len(table)
    mapping = {key: int(counts[key]) / total for key in sorted(counts.index)}
    encoder = EncoderConfig(
        method="frequency", column=column, categories=list(mapping), mapping=mapping
    )
    result = _map_in_place(
        table, column, lambda v: None if is_missing(v) else mapping.get(_key(v), 0)
    )
    log = CleaningLogEntry(
        operation="Frequency Encoding",
        column=column,
        details=f"Encoded {len(counts)} categories by their frequency",
        rows_affected=len(table),
        category="encoding",
    )
    return result, encoder, log


def target_encode(
    table: Table, column: str, target_column: str, smoothing: float = 1.0
) -> EncodingResult:
    """Replace each category with a smoothed mean of a numeric target.

    ``(count * category_mean + smoothing * global_mean) / (count + smoothing)``;
    missing and unseen values receive the global mean.
    """
    _require(table, column)
    _require(table, target_column)
    targets = [v for v in table.column_values(target_column) if is_number(v)]
    if not targets:
        raise ValueError(f"Target column '{target_column}' has no numeric values.")
    global_mean = sum(targets) / len(targets)

    sums: dict[str, list[float]] = {}
    for row in table.rows:
        key = _key(row.get(column))
        target = row.get(target_column)
        if key is not None and is_number(target):
            bucket = sums.setdefault(key, [0.0, 0])
            bucket[0] += target
            bucket[1] += 1

    mapping = {}
    for key, (total, count) in sums.items():
        category_mean = total / count
        mapping[key] = (count * category_mean + smoothing * global_mean) / (count + smoothing)

    encoder = EncoderConfig(
        method="target",
        column=column,
        categories=list(sums),
        mapping=mapping,
        default=global_mean,
    )
    result = _map_in_place(table, column, lambda v: mapping.get(_key(v), global_mean))
    log = CleaningLogEntry(
        operation="Target Encoding",
        column=column,
        details=(
            f"Encoded {len(sums)} categories using target mean "
            f"(smoothing: {cell_text(float(smoothing))})"
        ),
        rows_affected=len(table),
        category="encoding",
    )
    return result, encoder, log


def binary_code(index: int, width: int) -> list[int]:
    """``binary_code(3, 3) -> [0, 1, 1]``."""
    return [int(bit) for bit in format(index, f"0{width}b")]


def binary_encode(table: Table, column: str) -> EncodingResult:
    """Replace *column* with ``ceil(log2(n + 1))`` bit columns.

    Categories are numbered from 1 so the all-zero code is left for missing
    and unseen values.
    """
    _require(table, column)
    categories = _categories(table, column)
    width = math.ceil(math.log2(len(categories) + 1))
    new_columns = _derived_names(table, column, [f"{column}_bit{i}" for i in range(width)])
    mapping = {cat: binary_code(i + 1, width) for i, cat in enumerate(categories)}
    encoder = EncoderConfig(
        method="binary",
        column=column,
        categories=categories,
        mapping=mapping,
        new_columns=new_columns,
    )
    zeros = [0] * width
    result = _replace_with(table, column, new_columns, lambda v: mapping.get(_key(v), zeros))
    log = CleaningLogEntry(
        operation="Binary Encoding",
        column=column,
        details=f"Created {width} binary columns from {len(categories)} categories",
        rows_affected=len(table),
        category="encoding",
    )
    return result, encoder, log


def encode_column(
    table: Table,
    column: str,
    method: str,
    target_column: Optional[str] = None,
    drop_first: bool = False,
    smoothing: float = 1.0,
) -> EncodingResult:
    """Dispatch to the encoder named by *method*."""
    if method not in ENCODING_METHODS:
        raise ValueError(
            f"Invalid encoding method '{method}'. Must be one of {sorted(ENCODING_METHODS)}."
        )
    if method == "onehot":
        return one_hot_encode(table, column, drop_first=drop_first)
    if method == "label":
        return label_encode(table, column)
    if method == "frequency":
        return frequency_encode(table, column)
    if method == "binary":
        return binary_encode(table, column)
    if not target_column:
        raise ValueError("Target encoding requires a target column.")
    return target_encode(table, column, target_column, smoothing=smoothing)


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


def apply_encoder(table: Table, column: str, encoder: EncoderConfig) -> Table:
    """Apply a fitted encoder to a (possibly new) table."""
    _require(table, column)
    method = encoder.method
    if method == "onehot":
        encoded = encoder.categories[len(encoder.categories) - len(encoder.new_columns):]
        names = _derived_names(table, column, [f"{column}_{cat}" for cat in encoded])
        return _replace_with(
            table, column, names, lambda v: [int(_key(v) == cat) for cat in encoded]
        )
    if method == "binary":
        width = len(encoder.new_columns)
        names = _derived_names(table, column, [f"{column}_bit{i}" for i in range(width)])
        zeros = [0] * width
        return _replace_with(
            table, column, names, lambda v: encoder.mapping.get(_key(v), zeros)
        )
    if method == "label":
        return _map_in_place(table, column, lambda v: encoder.mapping.get(_key(v)))
    if method == "frequency":
        return _map_in_place(
            table, column, lambda v: None if is_missing(v) else encoder.mapping.get(_key(v), 0)
        )
    if method == "target":
        return _map_in_place(
            table, column, lambda v: encoder.mapping.get(_key(v), encoder.default)
        )
    raise ValueError(
        f"Invalid encoding method '{method}'. Must be one of {sorted(ENCODING_METHODS)}."
    )
