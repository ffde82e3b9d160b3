"""LangGraph pipeline orchestrator: stage list, graph nodes and workflow builder.

Every configured step is a ``Stage``. Enabled stages become graph nodes in
their fixed order and are followed by a ``finalize`` node that recomputes
statistics for whatever table the run ended with. Each node wraps its stage
in try/except: a failed stage leaves a log entry and routes straight to
``finalize`` (the baseline-model stage is the exception, its failure is
logged and the run carries on).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Optional

from tableprep.config import PipelineConfiguration
from tableprep.models import (
    CleaningLogEntry,
    ColumnStatistics,
    PipelineResult,
    PipelineState,
    Table,
    YieldPoint,
)
from tableprep.tools.cleaning import (
    clean_nan_values,
    drop_high_missing_columns,
    handle_missing_values,
    normalize_column_names,
    remove_all_null_columns,
    remove_duplicates,
    remove_low_variance_features,
    remove_near_duplicates,
    remove_outliers,
    standardize_case,
    trim_whitespace,
)
from tableprep.tools.encoding import encode_column
from tableprep.tools.features import (
    bin_numeric_feature,
    create_aggregation_features,
    create_lag_features,
    create_polynomial_features,
    create_rolling_features,
    create_text_features,
    extract_time_features,
)
from tableprep.tools.geo import (
    detect_geo_columns,
    geo_cluster,
    grid_encode,
    hex_encode,
    validate_geo_coordinates,
)
from tableprep.tools.inspection import (
    analyze_columns,
    detect_categorical_columns,
    statistics_by_name,
)
from tableprep.tools.modeling import auto_train_baseline, train_baseline
from tableprep.tools.scaling import apply_transform, numeric_columns, scale_columns

logger = logging.getLogger(__name__)

StageUpdate = dict[str, Any]
StageFn = Callable[[PipelineState, PipelineConfiguration, Optional[YieldPoint]], StageUpdate]

MODEL_STAGE = "model"


@dataclass(frozen=True)
class Stage:
    """One named step of the pipeline."""

    name: str
    enabled: bool
    apply: StageFn


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve(state: PipelineState, name: str) -> str:
    """Map a configured (input) column name onto the current table."""
    return state.get("column_mapping", {}).get(name, name)


def _target(state: PipelineState, pipeline_config: PipelineConfiguration) -> Optional[str]:
    if not pipeline_config.target_column:
        return None
    return _resolve(state, pipeline_config.target_column)


def _present(
    state: PipelineState, names: Iterable[str], operation: str
) -> tuple[list[str], list[CleaningLogEntry]]:
    """Resolve configured columns; ones missing from the table are reported and skipped."""
    table = state["table"]
    present, logs = [], []
    for name in names:
        resolved = _resolve(state, name)
        if resolved in table.columns:
            present.append(resolved)
        else:
            logs.append(
                CleaningLogEntry(
                    operation=operation,
                    column=name,
                    details=f"Column '{name}' not found; skipped",
                    rows_affected=0,
                    category="validation",
                )
            )
    return present, logs


def _shape_error(operation: str, details: str) -> StageUpdate:
    logger.warning("%s skipped: %s", operation, details)
    return {
        "logs": [
            CleaningLogEntry(
                operation=operation, details=details, rows_affected=0, category="error"
            )
        ]
    }


def _require_column(
    state: PipelineState, name: str, operation: str
) -> tuple[Optional[str], Optional[StageUpdate]]:
    resolved = _resolve(state, name) if name else ""
    if not resolved or resolved not in state["table"].columns:
        return None, _shape_error(operation, f"Column '{name}' not found in table")
    return resolved, None


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def _normalize_columns_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, mapping, logs = normalize_column_names(state["table"])
    return {"table": table, "column_mapping": mapping, "logs": logs}


def _trim_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, logs = trim_whitespace(state["table"])
    return {"table": table, "logs": logs}


def _case_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, logs = standardize_case(state["table"], case_type=pipeline_config.case_type)
    return {"table": table, "logs": logs}


def _dedupe_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, logs = remove_duplicates(state["table"])
    return {"table": table, "logs": logs}


def _near_dedupe_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, logs = remove_near_duplicates(
        state["table"],
        tolerance=pipeline_config.near_duplicate_tolerance,
        yield_point=yield_point,
    )
    return {"table": table, "logs": logs}


def _high_missing_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table = state["table"]
    table, logs = drop_high_missing_columns(
        table, analyze_columns(table), pipeline_config.high_missing_threshold * 100
    )
    return {"table": table, "logs": logs}


def _missing_stage(state, pipeline_config, yield_point) -> StageUpdate:
    columns, logs = None, []
    if pipeline_config.missing_columns:
        columns, logs = _present(state, pipeline_config.missing_columns, "Missing Values")
        if not columns:
            return {"logs": logs}
    table = state["table"]
    strategy = pipeline_config.missing_strategy
    table, filled = handle_missing_values(
        table,
        analyze_columns(table),
        strategy,
        columns=columns,
        constant=pipeline_config.missing_constant,
        threshold=pipeline_config.missing_threshold if strategy == "remove" else None,
        target=pipeline_config.missing_target,
    )
    return {"table": table, "logs": logs + filled}


def _low_variance_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table = state["table"]
    target = _target(state, pipeline_config)
    statistics = [s for s in analyze_columns(table) if s.name != target]
    table, logs = remove_low_variance_features(
        table, statistics, pipeline_config.low_variance_threshold
    )
    return {"table": table, "logs": logs}


def _outlier_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.outlier
    table = state["table"]
    target = _target(state, pipeline_config)
    logs = []
    if options.columns:
        columns, logs = _present(state, options.columns, "Outlier Handling")
    else:
        columns = numeric_columns(table, exclude=[target] if target else None)
    if not columns:
        return {"logs": logs}
    table, treated = remove_outliers(
        table,
        analyze_columns(table),
        method=options.method,
        treatment=options.treatment,
        threshold=options.threshold,
        columns=columns,
        replacement=options.replacement,
    )
    return {"table": table, "logs": logs + treated}


def _time_features_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.features.time
    column, error = _require_column(state, options.column, "Time Feature Extraction")
    if error:
        return error
    table, _, log = extract_time_features(state["table"], column, options.features)
    return {"table": table, "logs": [log]}


def _rolling_features_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.features.rolling
    column, error = _require_column(state, options.column, "Rolling Features")
    if error:
        return error
    table, _, log = create_rolling_features(
        state["table"], column, options.windows, options.functions
    )
    return {"table": table, "logs": [log]}


def _lag_features_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.features.lag
    column, error = _require_column(state, options.column, "Lag Features")
    if error:
        return error
    table, _, log = create_lag_features(state["table"], column, options.periods)
    return {"table": table, "logs": [log]}


def _polynomial_features_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.features.polynomial
    columns, logs = _present(state, options.columns, "Polynomial Features")
    if not columns:
        return {"logs": logs}
    table, _, log = create_polynomial_features(
        state["table"], columns, options.degree, options.interaction_only
    )
    return {"table": table, "logs": logs + [log]}


def _binning_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.features.binning
    column, error = _require_column(state, options.column, "Feature Binning")
    if error:
        return error
    table, _, log = bin_numeric_feature(
        state["table"],
        column,
        method=options.method,
        num_bins=options.bins,
        custom_edges=options.edges or None,
    )
    return {"table": table, "logs": [log]}


def _aggregation_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.features.aggregation
    group, error = _require_column(state, options.group_column, "Aggregation Features")
    if error:
        return error
    values, logs = _present(state, options.value_columns, "Aggregation Features")
    table = state["table"]
    for value_column in values:
        table, _, log = create_aggregation_features(
            table, group, value_column, options.functions
        )
        logs.append(log)
    return {"table": table, "logs": logs}


def _text_features_stage(state, pipeline_config, yield_point) -> StageUpdate:
    columns, logs = _present(
        state, pipeline_config.features.text.columns, "Text Features"
    )
    table = state["table"]
    for column in columns:
        table, _, log = create_text_features(table, column)
        logs.append(log)
    return {"table": table, "logs": logs}


def _geo_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.geo
    table = state["table"]
    detected = detect_geo_columns(table.columns)
    lat = _resolve(state, options.lat_column) if options.lat_column else detected["lat_column"]
    lon = _resolve(state, options.lon_column) if options.lon_column else detected["lon_column"]
    if not lat or not lon or lat not in table.columns or lon not in table.columns:
        return _shape_error("Geo Encoding", "Latitude/longitude columns not found")

    logs = []
    check = validate_geo_coordinates(table, lat, lon)
    if check["invalid"]:
        logs.append(
            CleaningLogEntry(
                operation="Geo Validation",
                details=(
                    f"{check['invalid']} rows have invalid coordinates"
                    + (f": {'; '.join(check['issues'])}" if check["issues"] else "")
                ),
                rows_affected=check["invalid"],
                category="validation",
            )
        )

    update: StageUpdate = {}
    if options.method == "cluster":
        table, centroids, log = geo_cluster(
            table, lat, lon, num_clusters=options.num_clusters, seed=options.seed
        )
        update["centroids"] = centroids
    elif options.method == "hex":
        table, log = hex_encode(table, lat, lon, resolution=options.hex_resolution)
    else:
        table, log = grid_encode(table, lat, lon, grid_size=options.grid_size)
    update.update(table=table, logs=logs + [log])
    return update


def _encoding_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.encoding
    table = state["table"]
    target = _target(state, pipeline_config)
    if options.method == "target" and (not target or target not in table.columns):
        return _shape_error("Target Encoding", "Target encoding requires a target column")

    lookup = statistics_by_name(analyze_columns(table))
    logs: list[CleaningLogEntry] = []
    if options.selected_columns:
        columns, logs = _present(state, options.selected_columns, "Encoding")
    else:
        columns = [
            c for c in detect_categorical_columns(lookup.values()) if lookup[c].unique_count
        ]
    columns = [c for c in columns if c != target]

    encoders = dict(state.get("encoders", {}))
    for column in columns:
        stats = lookup[column]
        if options.method in ("onehot", "binary") and stats.unique_count > options.max_categories:
            logs.append(
                CleaningLogEntry(
                    operation="Encoding",
                    column=column,
                    details=(
                        f"Skipped: {stats.unique_count} categories exceeds the maximum "
                        f"of {options.max_categories}"
                    ),
                    rows_affected=0,
                    category="validation",
                )
            )
            continue
        table, encoder, log = encode_column(
            table,
            column,
            options.method,
            target_column=target,
            drop_first=options.drop_first,
            smoothing=options.smoothing,
        )
        encoders[column] = encoder
        logs.append(log)
    return {"table": table, "logs": logs, "encoders": encoders}


def _scaling_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.scaling
    table = state["table"]
    target = _target(state, pipeline_config)
    exclude = [target] if target else []
    logs: list[CleaningLogEntry] = []
    if options.selected_columns:
        columns, logs = _present(state, options.selected_columns, "Scaling")
        columns = [c for c in columns if c not in exclude]
    else:
        columns = numeric_columns(table, exclude=exclude)
    if not columns:
        return {"logs": logs}

    table, transformed = apply_transform(
        table,
        columns,
        options.transform,
        offset=options.log_offset,
        lam=options.boxcox_lambda,
    )
    table, scaler, scaled = scale_columns(
        table, columns, options.method, exclude, options.feature_range
    )
    return {"table": table, "scaler": scaler, "logs": logs + transformed + scaled}


def _model_stage(state, pipeline_config, yield_point) -> StageUpdate:
    options = pipeline_config.model
    table = state["table"]
    target = _target(state, pipeline_config)
    if not target or target not in table.columns:
        return _shape_error("Baseline Model", "Model training requires a target column")

    statistics = analyze_columns(table)
    features = [s.name for s in statistics if s.type == "number" and s.name != target]
    if not features:
        return {
            "logs": [
                CleaningLogEntry(
                    operation="Baseline Model",
                    details="No numeric features available for training",
                    rows_affected=0,
                    category="model",
                )
            ]
        }
    if options.auto_select or options.model_type == "auto":
        model, log = auto_train_baseline(table, features, target, yield_point=yield_point)
    else:
        target_stats = statistics_by_name(statistics)[target]
        model, log = train_baseline(
            table,
            features,
            target,
            model_type=options.model_type,
            target_is_numeric=target_stats.type == "number",
            yield_point=yield_point,
        )
    return {"model": model, "logs": [log]}


def _nan_cleanup_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, logs = clean_nan_values(state["table"])
    return {"table": table, "logs": logs}


def _null_columns_stage(state, pipeline_config, yield_point) -> StageUpdate:
    table, logs = remove_all_null_columns(
        state["table"], pipeline_config.null_column_threshold
    )
    return {"table": table, "logs": logs}


def build_stages(pipeline_config: PipelineConfiguration) -> list[Stage]:
    """Return every stage in execution order, flagged by whether it is enabled."""
    c = pipeline_config
    f = c.features
    return [
        Stage("normalize_columns", c.normalize_column_names, _normalize_columns_stage),
        Stage("trim_whitespace", c.trim_whitespace, _trim_stage),
        Stage("standardize_case", c.standardize_case, _case_stage),
        Stage("remove_duplicates", c.remove_duplicates, _dedupe_stage),
        Stage("remove_near_duplicates", c.remove_near_duplicates, _near_dedupe_stage),
        Stage("drop_high_missing", c.remove_high_missing, _high_missing_stage),
        Stage("handle_missing", c.handle_missing, _missing_stage),
        Stage("remove_low_variance", c.remove_low_variance, _low_variance_stage),
        Stage("handle_outliers", c.outlier.enabled, _outlier_stage),
        Stage("time_features", f.time.enabled, _time_features_stage),
        Stage("rolling_features", f.rolling.enabled, _rolling_features_stage),
        Stage("lag_features", f.lag.enabled, _lag_features_stage),
        Stage("polynomial_features", f.polynomial.enabled, _polynomial_features_stage),
        Stage("binning", f.binning.enabled, _binning_stage),
        Stage("aggregation_features", f.aggregation.enabled, _aggregation_stage),
        Stage("text_features", f.text.enabled, _text_features_stage),
        Stage("geo_encoding", c.geo.enabled, _geo_stage),
        Stage("encoding", c.encoding.enabled, _encoding_stage),
        Stage("scaling", c.scaling.enabled, _scaling_stage),
        Stage(MODEL_STAGE, c.model.enabled, _model_stage),
        Stage("nan_cleanup", c.normalize_nan_values, _nan_cleanup_stage),
        Stage("remove_null_columns", c.remove_null_columns, _null_columns_stage),
    ]


# ---------------------------------------------------------------------------
# Graph nodes
# ---------------------------------------------------------------------------


def stage_node(
    state: PipelineState,
    stage: Stage,
    pipeline_config: PipelineConfiguration,
    yield_point: Optional[YieldPoint] = None,
) -> PipelineState:
    """Run one stage, folding its update (or its failure) into the state."""
    if yield_point is not None:
        yield_point(stage.name)
    logger.debug("Running stage %s on %d rows", stage.name, len(state["table"]))
    try:
        update = dict(stage.apply(state, pipeline_config, yield_point))
    except Exception as exc:
        logger.exception("Stage %s failed", stage.name)
        if stage.name == MODEL_STAGE:
            entry = CleaningLogEntry(
                operation="Baseline Model Error",
                details=f"Model training failed: {exc}",
                rows_affected=0,
                category="model",
            )
            return {**state, "logs": state["logs"] + [entry]}
        entry = CleaningLogEntry(
            operation="Pipeline Error",
            details=f"Stage '{stage.name}' failed: {exc}",
            rows_affected=0,
            category="error",
        )
        return {**state, "logs": state["logs"] + [entry], "failed_stage": stage.name}

    new_logs = update.pop("logs", [])
    return {**state, **update, "logs": state["logs"] + list(new_logs)}


def finalize_node(state: PipelineState) -> PipelineState:
    """Recompute statistics for the table the run ended with."""
    table = state["table"]
    if state.get("failed_stage"):
        logger.warning("Pipeline stopped at stage %s", state["failed_stage"])
    return {**state, "statistics": analyze_columns(table)}


def _route_after(state: PipelineState, next_node: str) -> str:
    return "finalize" if state.get("failed_stage") else next_node


def build_graph(
    stages: list[Stage],
    pipeline_config: PipelineConfiguration,
    yield_point: Optional[YieldPoint] = None,
) -> Any:
    """Build and compile the LangGraph workflow for the enabled stages.

    Nodes run in list order and end at ``finalize``. After every stage a
    conditional edge routes to ``finalize`` once ``failed_stage`` is set.

    Returns:
        A compiled LangGraph ``StateGraph``.
    """
    from langgraph.graph import END, START, StateGraph

    graph = StateGraph(PipelineState)
    enabled = [stage for stage in stages if stage.enabled]

    for stage in enabled:
        graph.add_node(
            stage.name,
            partial(
                stage_node,
                stage=stage,
                pipeline_config=pipeline_config,
                yield_point=yield_point,
            ),
        )
    graph.add_node("finalize", finalize_node)

    names = [stage.name for stage in enabled]
    graph.add_edge(START, names[0] if names else "finalize")
    for current, following in zip(names, names[1:] + ["finalize"]):
        targets = {following, "finalize"}
        graph.add_conditional_edges(
            current,
            partial(_route_after, next_node=following),
            {t: t for t in targets},
        )
    graph.add_edge("finalize", END)

    return graph.compile()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_pipeline(
    table: Table,
    pipeline_config: Optional[PipelineConfiguration] = None,
    statistics: Optional[list[ColumnStatistics]] = None,
    yield_point: Optional[YieldPoint] = None,
    on_complete: Optional[Callable[[], None]] = None,
) -> PipelineResult:
    """Run every enabled stage over *table* and collect the results.

    Args:
        table: Parsed input table; never modified.
        pipeline_config: Stage toggles and parameters (defaults if None).
        statistics: Statistics of the input table, if already computed.
        yield_point: Called with a label between stages and periodically
            inside long-running stages.
        on_complete: Called once when the run ends, whether or not a stage
            failed.

    Returns:
        A ``PipelineResult``. When a stage fails, ``failed_stage`` names it
        and ``table`` is the output of the last successful stage.
    """
    pipeline_config = pipeline_config or PipelineConfiguration()
    state: PipelineState = {
        "table": table,
        "original": table,
        "statistics": statistics,
        "logs": [],
        "encoders": {},
        "scaler": None,
        "model": None,
        "centroids": [],
        "column_mapping": {},
        "failed_stage": None,
    }
    try:
        if not len(table):
            state["logs"] = [
                CleaningLogEntry(
                    operation="Validation",
                    details="Dataset has no rows; no stages were run",
                    rows_affected=0,
                    category="error",
                )
            ]
            stages: list[Stage] = []
        else:
            stages = build_stages(pipeline_config)
        app = build_graph(stages, pipeline_config, yield_point)
        logger.info(
            "Running pipeline: %d rows, %d enabled stages",
            len(table),
            sum(stage.enabled for stage in stages),
        )
        final = app.invoke(state, {"recursion_limit": len(stages) + 5})
    finally:
        if on_complete is not None:
            on_complete()

    return PipelineResult(
        table=final["table"],
        statistics=final.get("statistics") or [],
        logs=final["logs"],
        encoders=final.get("encoders", {}),
        scaler=final.get("scaler"),
        model=final.get("model"),
        centroids=final.get("centroids", []),
        column_mapping=final.get("column_mapping", {}),
        failed_stage=final.get("failed_stage"),
    )
