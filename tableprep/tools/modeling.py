"""Illustrative baseline models trained on a prepared table.

These are sanity checks for a prepared dataset, not tuned models: every
metric is computed on the training rows themselves.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Sequence

import numpy as np
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.metrics import (
    accuracy_score,
    confusion_matrix,
    f1_score,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    precision_score,
    r2_score,
    recall_score,
)
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from tableprep.models import (
    BaselineModel,
    CleaningLogEntry,
    Table,
    YieldPoint,
    cell_key,
    cell_text,
    is_missing,
    is_number,
    round_half_up,
)

logger = logging.getLogger(__name__)

MODEL_TYPES = {"auto", "linear", "logistic", "tree"}


def _r3(value: float) -> float:
    return round_half_up(float(value), 3)


def _feature_value(value: Any) -> float:
    if is_number(value):
        return float(value)
    try:
        parsed = float(cell_text(value))
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _training_rows(
    table: Table, features: Sequence[str], target: str, numeric_target: bool
) -> tuple[np.ndarray, list]:
    """Feature matrix and target list, skipping rows whose target is missing."""
    for col in list(features) + [target]:
        if col not in table.columns:
            raise ValueError(f"Column '{col}' not found in table.")
    matrix, targets = [], []
    for row in table.rows:
        value = row.get(target)
        if is_missing(value) or (numeric_target and not is_number(value)):
            continue
        matrix.append([_feature_value(row.get(col)) for col in features])
        targets.append(value)
    if not matrix or not features:
        raise ValueError("Insufficient data for training")
    return np.asarray(matrix, dtype=float), targets


def _coefficients(features: Sequence[str], intercept: float, weights) -> dict:
    return {
        "intercept": float(intercept),
        "weights": {col: float(w) for col, w in zip(features, weights)},
    }


def is_classification_target(values: Sequence[Any]) -> bool:
    """At most 10 distinct values, or every value is a string."""
    present = [v for v in values if not is_missing(v)]
    distinct = {cell_key(v) for v in present}
    return len(distinct) <= 10 or all(isinstance(v, str) for v in present)


# ---------------------------------------------------------------------------
# Trainers
# ---------------------------------------------------------------------------


def train_linear_regression(table: Table, features: Sequence[str], target: str) -> BaselineModel:
    """Ordinary least squares on a numeric target."""
    X, targets = _training_rows(table, features, target, numeric_target=True)
    y = np.asarray(targets, dtype=float)
    estimator = LinearRegression().fit(X, y)
    predictions = estimator.predict(X)
    mse = mean_squared_error(y, predictions)
    return BaselineModel(
        model_type="linear_regression",
        features=list(features),
        target=target,
        coefficients=_coefficients(features, estimator.intercept_, estimator.coef_),
        metrics={
            "mse": _r3(mse),
            "rmse": _r3(math.sqrt(mse)),
            "mae": _r3(mean_absolute_error(y, predictions)),
            "r2": _r3(r2_score(y, predictions)) if len(y) > 1 else 0.0,
        },
        estimator=estimator,
    )


def train_logistic_regression(
    table: Table, features: Sequence[str], target: str, max_iterations: int = 100
) -> BaselineModel:
    """Binary logistic regression; the second class seen is the positive one."""
    X, targets = _training_rows(table, features, target, numeric_target=False)
    order: dict[tuple, Any] = {}
    for value in targets:
        order.setdefault(cell_key(value), value)
    classes = list(order.values())[:2]
    positive = cell_key(classes[1]) if len(classes) > 1 else None
    y = np.asarray([int(cell_key(v) == positive) for v in targets])
    if len(set(y.tolist())) < 2:
        raise ValueError("Logistic regression needs two target classes")

    estimator = LogisticRegression(max_iter=max_iterations).fit(X, y)
    probabilities = np.clip(estimator.predict_proba(X)[:, 1], 0.001, 0.999)
    predictions = (probabilities >= 0.5).astype(int)
    tn, fp, fn, tp = confusion_matrix(y, predictions, labels=[0, 1]).ravel()
    return BaselineModel(
        model_type="logistic_regression",
        features=list(features),
        target=target,
        classes=classes,
        coefficients=_coefficients(features, estimator.intercept_[0], estimator.coef_[0]),
        metrics={
            "accuracy": _r3(accuracy_score(y, predictions)),
            "precision": _r3(precision_score(y, predictions, zero_division=0)),
            "recall": _r3(recall_score(y, predictions, zero_division=0)),
            "f1": _r3(f1_score(y, predictions, zero_division=0)),
            "log_loss": _r3(log_loss(y, probabilities, labels=[0, 1])),
            "confusion_matrix": {"tp": int(tp), "tn": int(tn), "fp": int(fp), "fn": int(fn)},
        },
        estimator=estimator,
    )


def train_decision_tree(
    table: Table,
    features: Sequence[str],
    target: str,
    max_depth: int = 5,
    min_samples: int = 10,
) -> BaselineModel:
    """Shallow decision tree, classifier or regressor depending on the target."""
    classification = is_classification_target(table.column_values(target))
    X, targets = _training_rows(table, features, target, numeric_target=not classification)

    if classification:
        labels = [cell_text(v) for v in targets]
        estimator = DecisionTreeClassifier(
            max_depth=max_depth, min_samples_split=min_samples, random_state=0
        ).fit(X, labels)
        predictions = estimator.predict(X)
        metrics = {
            "accuracy": _r3(accuracy_score(labels, predictions)),
            "num_nodes": int(estimator.tree_.node_count),
        }
        classes = [str(c) for c in estimator.classes_]
    else:
        y = np.asarray(targets, dtype=float)
        estimator = DecisionTreeRegressor(
            max_depth=max_depth, min_samples_split=min_samples, random_state=0
        ).fit(X, y)
        mse = mean_squared_error(y, estimator.predict(X))
        metrics = {
            "mse": _r3(mse),
            "rmse": _r3(math.sqrt(mse)),
            "num_nodes": int(estimator.tree_.node_count),
        }
        classes = None

    return BaselineModel(
        model_type="decision_tree_classifier" if classification else "decision_tree_regressor",
        features=list(features),
        target=target,
        classes=classes,
        metrics=metrics,
        estimator=estimator,
    )


def auto_train_baseline(
    table: Table,
    features: Sequence[str],
    target: str,
    yield_point: Optional[YieldPoint] = None,
) -> tuple[BaselineModel, CleaningLogEntry]:
    """Pick a baseline from the shape of the target and train it.

    Two classes use logistic regression, other classification targets a
    decision tree, and numeric targets linear regression (falling back to a
    regression tree if that fails).
    """
    if target not in table.columns:
        raise ValueError(f"Column '{target}' not found in table.")
    values = [v for v in table.column_values(target) if not is_missing(v)]
    distinct = {cell_key(v) for v in values}
    if yield_point is not None:
        yield_point("model")

    if is_classification_target(values):
        if len(distinct) == 2:
            model = train_logistic_regression(table, features, target)
            label = "Logistic Regression (Binary Classification)"
        else:
            model = train_decision_tree(table, features, target)
            label = "Decision Tree (Multi-class Classification)"
    else:
        try:
            model = train_linear_regression(table, features, target)
            label = "Linear Regression"
        except (ValueError, np.linalg.LinAlgError) as exc:
            logger.warning("Linear regression failed (%s); using a regression tree", exc)
            model = train_decision_tree(table, features, target)
            label = "Decision Tree (Regression)"

    log = CleaningLogEntry(
        operation="Baseline Model Training",
        details=f"Trained {label} with {len(features)} features",
        rows_affected=len(table),
        category="model",
    )
    return model, log


def train_baseline(
    table: Table,
    features: Sequence[str],
    target: str,
    model_type: str = "auto",
    target_is_numeric: bool = True,
    yield_point: Optional[YieldPoint] = None,
) -> tuple[BaselineModel, CleaningLogEntry]:
    """Train the requested model type, falling back to auto-selection.

    'linear' is only used for numeric targets and 'logistic' only for
    non-numeric ones; any other combination auto-selects.
    """
    if model_type not in MODEL_TYPES:
        raise ValueError(f"Invalid model type '{model_type}'. Must be one of {sorted(MODEL_TYPES)}.")
    if model_type == "linear" and target_is_numeric:
        model = train_linear_regression(table, features, target)
    elif model_type == "logistic" and not target_is_numeric:
        model = train_logistic_regression(table, features, target)
    elif model_type == "tree":
        model = train_decision_tree(table, features, target)
    else:
        return auto_train_baseline(table, features, target, yield_point=yield_point)

    log = CleaningLogEntry(
        operation="Baseline Model",
        details=f"Trained {model.model_type} model",
        rows_affected=len(table),
        category="model",
    )
    return model, log
