"""Core data models for the tabular dataset-preparation pipeline."""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import numpy as np
import pandas as pd
from typing_extensions import TypedDict

Cell = Union[str, int, float, bool, datetime, None]
Row = dict

PLACEHOLDER_VALUES = frozenset(
    ["other", "unknown", "n/a", "na", "none", "missing", "undefined", "not specified"]
)

LOG_CATEGORIES = frozenset(
    ["cleaning", "transformation", "encoding", "feature", "validation", "model", "error"]
)


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def is_missing(value: Any) -> bool:
    """Return True for null, absent (``None``) and empty-string cells."""
    return value is None or (isinstance(value, str) and value == "")


def is_number(value: Any) -> bool:
    """Return True for int/float cells. Booleans are not numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite_number(value: Any) -> bool:
    """Like :func:`is_number` but rejects NaN, +/-Infinity and ints beyond float range."""
    if not is_number(value):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def cell_text(value: Any) -> str:
    """Render a cell the way it is shown to users and written to CSV."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def cell_key(value: Any) -> tuple[str, str]:
    """Type-tagged key used for exact comparisons (duplicates, categories)."""
    if value is None:
        return ("null", "")
    if isinstance(value, bool):
        return ("boolean", cell_text(value))
    if is_number(value):
        return ("number", cell_text(value))
    if isinstance(value, (datetime, date)):
        return ("date", cell_text(value))
    return ("string", str(value))


def strict_equal(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion (``1 != "1"``, ``True != 1``)."""
    if is_number(left) and is_number(right):
        return left == right
    if left is None or right is None:
        return left is None and right is None
    if type(left) is not type(right):
        return False
    return left == right


def round_half_up(value: float, places: int = 0) -> float:
    """Round half away from zero on positive ties, like ``Math.round``.

    NaN, infinities and values too large to scale come back unchanged.
    """
    factor = 10**places
    try:
        scaled = value * factor + 0.5
    except OverflowError:
        return value
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled) / factor


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a cell as a point in time.

    Accepts ``datetime`` cells, numbers as epoch milliseconds (UTC) and
    date-like strings. Returns ``None`` when the cell cannot be parsed.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if is_number(value):
        if not math.isfinite(value):
            return None
        try:
            stamp = pd.Timestamp(int(value), unit="ms", tz="UTC")
        except (OverflowError, ValueError):
            return None
        return stamp.tz_localize(None).to_pydatetime()
    if isinstance(value, str) and value.strip():
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            try:
                stamp = pd.to_datetime(value.strip(), errors="coerce")
            except (OverflowError, ValueError, TypeError):
                return None
        if stamp is None or pd.isna(stamp):
            return None
        return stamp.to_pydatetime()
    return None


def _to_python(value: Any) -> Cell:
    """Convert numpy/pandas scalars into plain Python cells."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT or value is pd.NA:
        return None
    return value


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Table:
    """Ordered rows plus ordered column names.

    Rows are plain dicts keyed by declared columns; an absent key reads as
    ``None``. Tables are treated as immutable: every operation builds a new
    ``Table`` and never writes into the rows of its input.
    """

    columns: tuple[str, ...]
    rows: tuple[Row, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "rows", tuple(self.rows))
        if len(set(self.columns)) != len(self.columns):
            raise ValueError(f"Duplicate column names: {list(self.columns)}")
        declared = set(self.columns)
        for index, row in enumerate(self.rows):
            extra = set(row) - declared
            if extra:
                raise ValueError(
                    f"Row {index} has undeclared column(s): {sorted(extra)}"
                )

    def __len__(self) -> int:
        return len(self.rows)

    # -- construction -----------------------------------------------------

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]], columns: Optional[Iterable[str]] = None
    ) -> "Table":
        """Build a table from mappings, inferring columns from first appearance."""
        rows = [dict(record) for record in records]
        if columns is None:
            ordered: dict[str, None] = {}
            for row in rows:
                for key in row:
                    ordered.setdefault(key, None)
            columns = list(ordered)
        return cls(columns=tuple(columns), rows=tuple(rows))

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "Table":
        """Convert a DataFrame into a table; NaN/NaT become ``None``."""
        columns = [str(c) for c in df.columns]
        rows = []
        for values in df.itertuples(index=False, name=None):
            rows.append({col: _to_python(v) for col, v in zip(columns, values)})
        return cls(columns=tuple(columns), rows=tuple(rows))

    def to_frame(self) -> pd.DataFrame:
        """Return an object-dtype DataFrame with one column per declared column."""
        data = {col: [row.get(col) for row in self.rows] for col in self.columns}
        return pd.DataFrame(data, columns=list(self.columns), dtype=object)

    # -- access ---------------------------------------------------------------

    def _check(self, column: str) -> None:
        if column not in self.columns:
            raise KeyError(f"Column '{column}' not found in table.")

    def get(self, index: int, column: str) -> Cell:
        self._check(column)
        return self.rows[index].get(column)

    def column_values(self, column: str) -> list[Cell]:
        self._check(column)
        return [row.get(column) for row in self.rows]

    def numeric_series(self, column: str) -> pd.Series:
        """Float Series of *column*; non-numeric and non-finite cells become NaN."""
        values = self.column_values(column)
        return pd.Series(
            [float(v) if is_finite_number(v) else np.nan for v in values], dtype=float
        )

    # -- derivation ---------------------------------------------------------

    def with_rows(
        self, rows: Iterable[Row], columns: Optional[Iterable[str]] = None
    ) -> "Table":
        return Table(
            columns=tuple(self.columns if columns is None else columns),
            rows=tuple(rows),
        )

    def select(self, columns: Iterable[str]) -> "Table":
        """Keep only the given columns (in the given order)."""
        keep = [c for c in columns]
        for col in keep:
            self._check(col)
        rows = [{col: row[col] for col in keep if col in row} for row in self.rows]
        return Table(columns=tuple(keep), rows=tuple(rows))

    def drop(self, columns: Iterable[str]) -> "Table":
        dropped = set(columns)
        return self.select([c for c in self.columns if c not in dropped])

    def rename(self, mapping: Mapping[str, str]) -> "Table":
        new_columns = [mapping.get(c, c) for c in self.columns]
        rows = [{mapping.get(k, k): v for k, v in row.items()} for row in self.rows]
        return Table(columns=tuple(new_columns), rows=tuple(rows))

    def replace_column(self, column: str, new_columns: Iterable[str]) -> tuple[str, ...]:
        """Column list with *column* swapped for *new_columns* at its position."""
        self._check(column)
        result: list[str] = []
        for col in self.columns:
            if col == column:
                result.extend(c for c in new_columns if c not in result)
            elif col not in result:
                result.append(col)
        return tuple(result)

    def insert_columns(
        self, new_columns: Iterable[str], after: Optional[str] = None
    ) -> tuple[str, ...]:
        """Column list with *new_columns* added after *after* (default: at the end).

        Names already present keep their position.
        """
        result = list(self.columns)
        position = len(result) if after is None else result.index(after) + 1
        for col in new_columns:
            if col not in result:
                result.insert(position, col)
                position += 1
        return tuple(result)


# ---------------------------------------------------------------------------
# Statistics and audit records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnStatistics:
    """Read-only per-column summary produced by the analyzer."""

    name: str
    type: str
    total_count: int
    unique_count: int
    missing_count: int
    missing_percentage: float
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    mode: Cell = None
    std_dev: Optional[float] = None
    variance: Optional[float] = None
    q1: Optional[float] = None
    q3: Optional[float] = None


def _now() -> str:
    """Return current timestamp as ISO format string."""
    return datetime.now().isoformat()


@dataclass(frozen=True)
class CleaningLogEntry:
    """Record of a single operation's effect on the table."""

    operation: str
    details: str
    rows_affected: int
    column: Optional[str] = None
    category: str = "cleaning"
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "column": self.column,
            "details": self.details,
            "rowsAffected": self.rows_affected,
            "timestamp": self.timestamp,
            "category": self.category,
        }


def plural(count: int, word: str) -> str:
    """``plural(1, "row") -> "1 row"``, ``plural(3, "row") -> "3 rows"``."""
    return f"{count} {word}{'' if count == 1 else 's'}"


@dataclass
class EncoderConfig:
    """Fitted categorical encoder, replayable on new data."""

    method: str
    column: str
    categories: list[str] = field(default_factory=list)
    mapping: dict = field(default_factory=dict)
    new_columns: list[str] = field(default_factory=list)
    default: Optional[float] = None


@dataclass
class ScalerConfig:
    """Fitted scaler parameters per column."""

    method: str
    columns: list[str] = field(default_factory=list)
    params: dict[str, dict[str, float]] = field(default_factory=dict)
    feature_range: tuple[float, float] = (0.0, 1.0)


@dataclass
class BaselineModel:
    """Illustrative baseline model trained on the prepared table."""

    model_type: str
    features: list[str]
    target: str
    metrics: dict[str, Any]
    classes: Optional[list] = None
    coefficients: Optional[dict[str, Any]] = None
    estimator: Any = field(default=None, repr=False)
    trained_at: str = field(default_factory=_now)


@dataclass
class MLTask:
    """Guessed learning task for a target column."""

    type: str  # classification | regression | unknown
    confidence: float
    target_column: Optional[str] = None
    num_classes: Optional[int] = None
    class_distribution: Optional[dict[str, int]] = None


@dataclass
class ValidationIssue:
    """One finding of the readiness checks."""

    type: str  # error | warning | info | success
    message: str
    column: Optional[str] = None
    suggestion: Optional[str] = None


@dataclass
class ReadinessReport:
    """Score and findings for a prepared table."""

    score: int
    is_ready: bool
    is_processed: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)


@dataclass
class AuditReport:
    """Before/after summary of a pipeline run."""

    generated_at: str
    summary: dict[str, int]
    transformations: list[dict]
    data_quality: dict[str, float]
    warnings: list[str] = field(default_factory=list)
    target_column: Optional[str] = None
    split_config: Optional[dict] = None


@dataclass
class PipelineResult:
    """Everything a pipeline run hands back to its callers."""

    table: Table
    statistics: list[ColumnStatistics]
    logs: list[CleaningLogEntry]
    encoders: dict[str, EncoderConfig] = field(default_factory=dict)
    scaler: Optional[ScalerConfig] = None
    model: Optional[BaselineModel] = None
    centroids: list[tuple[float, float]] = field(default_factory=list)
    column_mapping: dict[str, str] = field(default_factory=dict)
    failed_stage: Optional[str] = None

    @property
    def columns(self) -> tuple[str, ...]:
        return self.table.columns


class PipelineState(TypedDict, total=False):
    """State threaded through the orchestrator graph."""

    # Data
    table: Table
    original: Table
    statistics: Optional[list[ColumnStatistics]]

    # Audit trail
    logs: list[CleaningLogEntry]

    # Learned artifacts
    encoders: dict[str, EncoderConfig]
    scaler: Optional[ScalerConfig]
    model: Optional[BaselineModel]
    centroids: list[tuple[float, float]]
    column_mapping: dict[str, str]

    # Control
    failed_stage: Optional[str]


YieldPoint = Callable[[str], None]
