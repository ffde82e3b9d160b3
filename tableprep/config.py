"""Pipeline configuration for the dataset-preparation engine.

Options are grouped per stage in frozen dataclasses. The camelCase surface
used by configuration files (``removeDuplicates``, ``outlier.method`` ...)
maps one-to-one onto the snake_case field names.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Mapping, Optional, Union

logger = logging.getLogger(__name__)

MISSING_STRATEGIES = ("remove", "mean", "median", "mode", "forward", "backward", "constant")
MISSING_TARGETS = ("rows", "columns")
CASE_TYPES = ("lower", "upper", "title", "sentence")
OUTLIER_METHODS = ("iqr", "zscore", "percentile")
OUTLIER_TREATMENTS = ("cap", "remove", "replace", "flag")
ENCODING_METHODS = ("onehot", "label", "frequency", "target", "binary")
SCALING_METHODS = ("standard", "minmax", "robust")
TRANSFORMS = ("none", "log", "sqrt", "boxcox")
TIME_FEATURES = ("hour", "day", "weekday", "month", "year", "quarter", "dayofyear", "week")
ROLLING_FUNCTIONS = ("mean", "sum", "min", "max", "std")
AGGREGATIONS = ("mean", "sum", "count", "min", "max", "std")
BIN_METHODS = ("uniform", "quantile", "custom")
GEO_METHODS = ("grid", "cluster", "hex")
MODEL_TYPES = ("auto", "linear", "logistic", "tree")

_ALIASES = {"equal": "uniform", "h3": "hex"}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _check_choice(owner: str, name: str, value: Any, allowed: tuple) -> None:
    if value not in allowed:
        raise ValueError(
            f"Invalid {owner}.{_camel(name)} '{value}'. Must be one of {list(allowed)}."
        )


class _Options:
    """Shared camelCase parsing/serialization for option groups."""

    CHOICES: ClassVar[dict[str, tuple]] = {}
    MULTI_CHOICES: ClassVar[dict[str, tuple]] = {}

    def __post_init__(self) -> None:
        owner = type(self).__name__
        for name, allowed in self.CHOICES.items():
            _check_choice(owner, name, getattr(self, name), allowed)
        for name, allowed in self.MULTI_CHOICES.items():
            for value in getattr(self, name):
                _check_choice(owner, name, value, allowed)

    @classmethod
    def from_dict(cls, mapping: Optional[Mapping[str, Any]]):
        """Build the option group from its camelCase mapping.

        Unknown keys are ignored with a warning; enumeration values are
        validated and raise ``ValueError`` when not recognized.
        """
        mapping = dict(mapping or {})
        kwargs: dict[str, Any] = {}
        known = set()
        for f in dataclasses.fields(cls):
            key = _camel(f.name)
            known.add(key)
            if key not in mapping:
                continue
            value = mapping[key]
            default = _default_of(f)
            if isinstance(default, _Options):
                value = type(default).from_dict(value)
            elif isinstance(default, tuple) and value is not None:
                value = tuple(value)
                if f.name in cls.MULTI_CHOICES:
                    value = tuple(_ALIASES.get(v, v) for v in value)
            elif f.name in cls.CHOICES and isinstance(value, str):
                value = _ALIASES.get(value, value)
            kwargs[f.name] = value
        unknown = sorted(set(mapping) - known)
        if unknown:
            logger.warning("Ignoring unknown %s option(s): %s", cls.__name__, unknown)
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, _Options):
                value = value.to_dict()
            elif isinstance(value, tuple):
                value = list(value)
            result[_camel(f.name)] = value
        return result


def _default_of(f: dataclasses.Field) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:  # type: ignore[misc]
        return f.default_factory()  # type: ignore[misc]
    return None


# ---------------------------------------------------------------------------
# Option groups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OutlierOptions(_Options):
    CHOICES = {
        "method": OUTLIER_METHODS,
        "treatment": OUTLIER_TREATMENTS,
        "replacement": ("median", "mean"),
    }

    enabled: bool = False
    method: str = "iqr"
    treatment: str = "cap"
    threshold: float = 1.5
    replacement: str = "median"
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class EncodingOptions(_Options):
    CHOICES = {"method": ENCODING_METHODS}

    enabled: bool = False
    method: str = "onehot"
    selected_columns: tuple[str, ...] = ()
    max_categories: int = 10
    drop_first: bool = False
    smoothing: float = 1.0


@dataclass(frozen=True)
class ScalingOptions(_Options):
    CHOICES = {"method": SCALING_METHODS, "transform": TRANSFORMS}

    enabled: bool = False
    method: str = "standard"
    selected_columns: tuple[str, ...] = ()
    transform: str = "none"
    feature_range: tuple[float, float] = (0.0, 1.0)
    boxcox_lambda: float = 0.5
    log_offset: float = 1.0


@dataclass(frozen=True)
class TimeFeatureOptions(_Options):
    MULTI_CHOICES = {"features": TIME_FEATURES}

    enabled: bool = False
    column: str = ""
    features: tuple[str, ...] = ("hour", "day", "weekday", "month", "year")


@dataclass(frozen=True)
class RollingOptions(_Options):
    MULTI_CHOICES = {"functions": ROLLING_FUNCTIONS}

    enabled: bool = False
    column: str = ""
    windows: tuple[int, ...] = (3, 7)
    functions: tuple[str, ...] = ("mean", "std")


@dataclass(frozen=True)
class LagOptions(_Options):
    enabled: bool = False
    column: str = ""
    periods: tuple[int, ...] = (1, 2, 3)


@dataclass(frozen=True)
class PolynomialOptions(_Options):
    enabled: bool = False
    columns: tuple[str, ...] = ()
    degree: int = 2
    interaction_only: bool = False


@dataclass(frozen=True)
class BinningOptions(_Options):
    CHOICES = {"method": BIN_METHODS}

    enabled: bool = False
    column: str = ""
    bins: int = 5
    method: str = "uniform"
    edges: tuple[float, ...] = ()


@dataclass(frozen=True)
class AggregationOptions(_Options):
    MULTI_CHOICES = {"functions": AGGREGATIONS}

    enabled: bool = False
    group_column: str = ""
    value_columns: tuple[str, ...] = ()
    functions: tuple[str, ...] = ("mean", "count")


@dataclass(frozen=True)
class TextFeatureOptions(_Options):
    enabled: bool = False
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class FeatureOptions(_Options):
    time: TimeFeatureOptions = field(default_factory=TimeFeatureOptions)
    rolling: RollingOptions = field(default_factory=RollingOptions)
    lag: LagOptions = field(default_factory=LagOptions)
    polynomial: PolynomialOptions = field(default_factory=PolynomialOptions)
    binning: BinningOptions = field(default_factory=BinningOptions)
    aggregation: AggregationOptions = field(default_factory=AggregationOptions)
    text: TextFeatureOptions = field(default_factory=TextFeatureOptions)


@dataclass(frozen=True)
class GeoOptions(_Options):
    CHOICES = {"method": GEO_METHODS}

    enabled: bool = False
    lat_column: str = ""
    lon_column: str = ""
    method: str = "grid"
    grid_size: float = 0.1
    num_clusters: int = 5
    hex_resolution: int = 7
    seed: int = 42


@dataclass(frozen=True)
class ModelOptions(_Options):
    CHOICES = {"model_type": MODEL_TYPES}

    enabled: bool = False
    auto_select: bool = True
    model_type: str = "auto"


@dataclass(frozen=True)
class PipelineConfiguration(_Options):
    """Immutable input to one pipeline run."""

    CHOICES = {
        "missing_strategy": MISSING_STRATEGIES,
        "missing_target": MISSING_TARGETS,
        "case_type": CASE_TYPES,
    }

    target_column: str = ""

    remove_duplicates: bool = True
    remove_near_duplicates: bool = False
    near_duplicate_tolerance: float = 0.9

    handle_missing: bool = True
    missing_strategy: str = "remove"
    missing_threshold: Optional[float] = 0.5
    missing_target: str = "rows"
    missing_columns: tuple[str, ...] = ()
    missing_constant: Any = ""

    trim_whitespace: bool = True
    standardize_case: bool = False
    case_type: str = "lower"
    normalize_column_names: bool = True

    remove_high_missing: bool = False
    high_missing_threshold: float = 0.5
    remove_low_variance: bool = False
    low_variance_threshold: float = 0.01

    normalize_nan_values: bool = True
    remove_null_columns: bool = True
    null_column_threshold: float = 1.0

    outlier: OutlierOptions = field(default_factory=OutlierOptions)
    encoding: EncodingOptions = field(default_factory=EncodingOptions)
    scaling: ScalingOptions = field(default_factory=ScalingOptions)
    features: FeatureOptions = field(default_factory=FeatureOptions)
    geo: GeoOptions = field(default_factory=GeoOptions)
    model: ModelOptions = field(default_factory=ModelOptions)

    def __post_init__(self) -> None:
        super().__post_init__()
        if not 0 <= self.near_duplicate_tolerance <= 1:
            raise ValueError(
                f"nearDuplicateTolerance must be within [0, 1], got {self.near_duplicate_tolerance}."
            )
        if self.missing_threshold is not None and not 0 <= self.missing_threshold <= 1:
            raise ValueError(
                f"missingThreshold must be within [0, 1], got {self.missing_threshold}."
            )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "PipelineConfiguration":
        """Read a configuration from a JSON file on disk."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file '{path}' must contain a JSON object.")
        return cls.from_dict(data)
