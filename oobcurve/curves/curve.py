"""
Out-of-bag learning curves.

The curve of a bagged ensemble reports, for every number of trees
s = 1..T, the value of one or more performance measures computed on the
OOB aggregate of the first s trees. It shows how many trees the ensemble
needs before its OOB performance stabilizes, without a hold-out set.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union
import numpy as np
import pandas as pd

from oobcurve.curves.aggregation import (
    final_oob_aggregate,
    iter_oob_aggregates,
    never_oob_samples,
)
from oobcurve.curves.measures import (
    Measure,
    MeasureRegistry,
    default_registry,
    evaluate_measures,
)
from oobcurve.ensembles.adapter import adapt_ensemble
from oobcurve.ensembles.base import EnsembleTensors, TaskType

logger = logging.getLogger(__name__)

DEFAULT_CLASSIF_MEASURES = ("auc",)
DEFAULT_REGR_MEASURES = ("mse",)

MeasureSelection = Union[str, Measure, Sequence[Union[str, Measure]]]


def default_measures(task_type: Union[str, TaskType]) -> tuple:
    """Measures used when the caller does not request any."""
    if TaskType.coerce(task_type) is TaskType.CLASSIFICATION:
        return DEFAULT_CLASSIF_MEASURES
    return DEFAULT_REGR_MEASURES


def _resolve_measures(
    tensors: EnsembleTensors,
    measures: Optional[MeasureSelection],
    registry: MeasureRegistry,
) -> List[Measure]:
    if measures is None:
        measures = default_measures(tensors.task_type)
    resolved = registry.resolve(measures)
    if not resolved:
        raise ValueError("at least one measure is required")

    ids = [m.id for m in resolved]
    duplicated = sorted({i for i in ids if ids.count(i) > 1})
    if duplicated:
        raise ValueError(f"measures must be unique, got duplicates {duplicated}")
    return resolved


def _warn_never_oob(tensors: EnsembleTensors) -> None:
    never_oob = never_oob_samples(tensors.inbag)
    if never_oob.size:
        logger.warning(
            "%d of %d samples were in-bag for all %d trees; their OOB prediction "
            "stays undefined (NaN) for the whole curve",
            never_oob.size,
            tensors.n_samples,
            tensors.n_trees,
        )


def compute_oob_curve(
    model: Any,
    measures: Optional[MeasureSelection] = None,
    X: Optional[Union[np.ndarray, pd.DataFrame]] = None,
    y: Optional[Union[np.ndarray, pd.Series]] = None,
    registry: Optional[MeasureRegistry] = None,
) -> pd.DataFrame:
    """
    Compute the out-of-bag learning curve of a bagged-tree ensemble.

    For each number of trees s = 1..T the OOB aggregate of the first s
    trees is computed and every requested measure is evaluated on it.

    Parameters
    ----------
    model : object
        A fitted scikit-learn RandomForest*, ExtraTrees* or Bagging* model
        (or Pipeline ending in one), a TrainedEnsemble, or EnsembleTensors.
        See ``adapt_ensemble``.
    measures : str, Measure or sequence of them, optional
        Measures to evaluate, in column order. Defaults to ``('auc',)``
        for classification and ``('mse',)`` for regression.
    X : array-like of shape (n_samples, n_features), optional
        Training features (required for scikit-learn models).
    y : array-like of shape (n_samples,), optional
        Training targets (required for scikit-learn models).
    registry : MeasureRegistry, optional
        Where measure ids are looked up. Defaults to the built-ins.

    Returns
    -------
    pd.DataFrame
        Exactly T rows indexed 1..T (index name 'num_trees') and one
        column per measure. Steps where some sample has no OOB tree yet
        hold whatever the measure returns for NaN input; built-in
        measures return NaN.

    Raises
    ------
    UnsupportedModelError
        If the model is not a recognized ensemble.
    MissingBookkeepingError
        If in-bag counts were not retained.
    MeasureEvaluationError
        If a measure rejects the aggregated predictions.

    Examples
    --------
    >>> from sklearn.ensemble import RandomForestClassifier
    >>> clf = RandomForestClassifier(n_estimators=100, random_state=0).fit(X, y)
    >>> curve = compute_oob_curve(clf, measures=["mmce", "auc", "brier"], X=X, y=y)
    >>> curve["mmce"].plot()
    """
    tensors = adapt_ensemble(model, X, y)
    if registry is None:
        registry = default_registry()
    resolved = _resolve_measures(tensors, measures, registry)
    _warn_never_oob(tensors)

    values = np.empty((tensors.n_trees, len(resolved)))
    for step, aggregate in iter_oob_aggregates(tensors):
        evaluated = evaluate_measures(
            aggregate, tensors.truth, tensors.task_type, resolved, registry
        )
        values[step - 1] = list(evaluated.values())

    curve = pd.DataFrame(
        values,
        index=pd.RangeIndex(1, tensors.n_trees + 1, name="num_trees"),
        columns=[m.id for m in resolved],
    )

    logger.debug(
        "computed OOB curve over %d trees for measures %s (%d undefined steps)",
        tensors.n_trees,
        list(curve.columns),
        int(curve.isna().any(axis=1).sum()),
    )
    return curve


def compute_oob_performance(
    model: Any,
    measures: Optional[MeasureSelection] = None,
    X: Optional[Union[np.ndarray, pd.DataFrame]] = None,
    y: Optional[Union[np.ndarray, pd.Series]] = None,
    registry: Optional[MeasureRegistry] = None,
) -> Dict[str, float]:
    """
    OOB performance of the full ensemble.

    Equivalent to the last row of ``compute_oob_curve`` but evaluates the
    measures once instead of once per tree.

    Parameters
    ----------
    model, measures, X, y, registry
        As in ``compute_oob_curve``.

    Returns
    -------
    dict
        Measure id -> value, in the requested order.
    """
    tensors = adapt_ensemble(model, X, y)
    if registry is None:
        registry = default_registry()
    resolved = _resolve_measures(tensors, measures, registry)
    _warn_never_oob(tensors)

    return evaluate_measures(
        final_oob_aggregate(tensors),
        tensors.truth,
        tensors.task_type,
        resolved,
        registry,
    )
