"""Class-imbalance resampling for classification targets."""

from __future__ import annotations

import numpy as np

from tableprep.models import CleaningLogEntry, Table, cell_text, is_number

IMBALANCE_METHODS = {"oversample", "undersample", "smote"}


def _class_key(value) -> str:
    return "null" if value is None else cell_text(value)


def handle_imbalance(
    table: Table,
    target_column: str,
    method: str,
    target_ratio: float = 1.0,
    seed: int = 42,
) -> tuple[Table, CleaningLogEntry]:
    """Resample rows so the target classes are closer to balanced.

    Args:
        table: Input table.
        target_column: Class label column.
        method: 'oversample' duplicates random rows of smaller classes up to
            ``floor(max_count * target_ratio)``; 'undersample' keeps a random
            ``floor(min_count * target_ratio)`` rows of larger classes;
            'smote' adds ``max_count - min_count`` synthetic rows for the
            smallest class, interpolating numeric columns between two random
            rows of that class.
        target_ratio: Scale applied to the target class size.
        seed: Seed for ``numpy.random.default_rng``.

    Returns:
        Tuple of (resampled table, log entry). ``rows_affected`` is the
        change in row count (negative when undersampling).

    Raises:
        ValueError: If the column or method is invalid or the table is empty.
    """
    if target_column not in table.columns:
        raise ValueError(f"Column '{target_column}' not found in table.")
    if method not in IMBALANCE_METHODS:
        raise ValueError(
            f"Invalid imbalance method '{method}'. Must be one of {sorted(IMBALANCE_METHODS)}."
        )
    if not len(table):
        raise ValueError("Cannot rebalance an empty table.")

    groups: dict[str, list[dict]] = {}
    for row in table.rows:
        groups.setdefault(_class_key(row.get(target_column)), []).append(row)
    counts = {cls: len(rows) for cls, rows in groups.items()}
    max_count = max(counts.values())
    min_count = min(counts.values())
    minority = min(counts, key=counts.get)
    rng = np.random.default_rng(seed)

    result: list[dict] = []
    if method == "oversample":
        target_count = int(max_count * target_ratio)
        for rows in groups.values():
            result.extend(rows)
            missing = target_count - len(rows)
            if missing > 0:
                picks = rng.integers(0, len(rows), size=missing)
                result.extend(dict(rows[i]) for i in picks)
        details = f"Oversampled minority classes to {target_count} samples each"

    elif method == "undersample":
        target_count = int(min_count * target_ratio)
        for rows in groups.values():
            if len(rows) <= target_count:
                result.extend(rows)
            else:
                order = rng.permutation(len(rows))[:target_count]
                result.extend(rows[i] for i in order)
        details = f"Undersampled to {target_count} samples per class"

    else:
        result.extend(table.rows)
        samples = groups[minority]
        numeric = [
            col
            for col in table.columns
            if col != target_column and is_number(table.rows[0].get(col))
        ]
        to_generate = max_count - min_count
        for _ in range(to_generate):
            first = samples[int(rng.integers(len(samples)))]
            second = samples[int(rng.integers(len(samples)))]
            alpha = float(rng.random())
            synthetic = dict(first)
            for col in numeric:
                a, b = first.get(col), second.get(col)
                if is_number(a) and is_number(b):
                    synthetic[col] = a + alpha * (b - a)
            result.append(synthetic)
        details = (
            f'Generated {to_generate} synthetic samples using SMOTE for class "{minority}"'
        )

    log = CleaningLogEntry(
        operation="Handle Class Imbalance",
        column=target_column,
        details=details,
        rows_affected=len(result) - len(table),
        category="transformation",
    )
    return table.with_rows(result), log
