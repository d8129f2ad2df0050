"""
Hyperparameter sweeps scored by out-of-bag performance.

A sweep retrains the ensemble once per grid value of a single
hyperparameter and records the OOB performance of each retrained
ensemble, producing a hyperparameter-vs-performance curve without any
cross-validation.

Grid points are independent and may run in a worker pool. Results are
always returned in grid order. A failed training aborts the whole sweep.
"""

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, ThreadPoolExecutor, wait
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd

from oobcurve.curves.curve import MeasureSelection, compute_oob_curve, compute_oob_performance
from oobcurve.curves.measures import MeasureRegistry, default_registry
from oobcurve.ensembles.sklearn_models import is_sklearn_ensemble
from oobcurve.exceptions import SweepCancelledError, TrainingError
from oobcurve.sweep.grid import (
    DEFAULT_GRID_SIZE,
    GridValue,
    Hyperparameter,
    get_hyperparameter,
    make_grid,
)
from oobcurve.sweep.trainer import ForestTrainer

logger = logging.getLogger(__name__)

_BACKENDS = {
    "process": ProcessPoolExecutor,
    "thread": ThreadPoolExecutor,
}


def evaluate_grid_point(
    value: GridValue,
    trainer: Callable[[Dict[str, Any]], Any],
    parameter_key: str,
    X: Union[np.ndarray, pd.DataFrame],
    y: Union[np.ndarray, pd.Series],
    measures: Optional[MeasureSelection] = None,
    registry: Optional[MeasureRegistry] = None,
    return_curve: bool = False,
) -> Union[Dict[str, float], pd.DataFrame]:
    """
    Train one ensemble with an overridden hyperparameter and score it.

    Parameters
    ----------
    value : int or float
        Hyperparameter value.
    trainer : callable
        ``trainer(params) -> fitted model``.
    parameter_key : str
        Key under which the value is passed to the trainer.
    X, y : array-like
        Training data, used to compute the OOB predictions.
    measures : str, Measure or sequence of them, optional
        Measures to evaluate.
    registry : MeasureRegistry, optional
        Where measure ids are looked up.
    return_curve : bool, default=False
        If True, return the full OOB curve instead of the final values.

    Returns
    -------
    dict or pd.DataFrame
        Final OOB measure values, or the whole curve.

    Raises
    ------
    TrainingError
        If the trainer raises.
    """
    try:
        model = trainer({parameter_key: value})
    except Exception as exc:
        raise TrainingError(
            f"training failed for {parameter_key}={value!r}: {exc}",
            parameter=parameter_key,
            value=value,
        ) from exc

    if return_curve:
        return compute_oob_curve(model, measures, X=X, y=y, registry=registry)
    return compute_oob_performance(model, measures, X=X, y=y, registry=registry)


def _check_cancelled(cancel_event: Optional[threading.Event], completed: int, total: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SweepCancelledError(
            f"sweep cancelled after {completed} of {total} grid points",
            completed=completed,
        )


def _run_sequential(
    task: Callable[[GridValue], Any],
    grid: Sequence[GridValue],
    cancel_event: Optional[threading.Event],
) -> List[Any]:
    results: List[Any] = [None] * len(grid)
    for index, value in enumerate(grid):
        _check_cancelled(cancel_event, index, len(grid))
        results[index] = task(value)
        logger.info("grid point %d/%d (value=%s) done", index + 1, len(grid), value)
    return results


def _resolve_n_jobs(n_jobs: Optional[int]) -> int:
    if n_jobs is None:
        return 1
    if n_jobs == -1:
        return os.cpu_count() or 1
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be -1 or >= 1, got {n_jobs}")
    return n_jobs


def _run_parallel(
    task: Callable[[GridValue], Any],
    grid: Sequence[GridValue],
    n_workers: int,
    backend: str,
    cancel_event: Optional[threading.Event],
) -> List[Any]:
    executor_class = _BACKENDS[backend]
    results: List[Any] = [None] * len(grid)
    completed = 0
    next_index = 0
    pending = {}

    # At most n_workers grid points in flight
    with executor_class(max_workers=n_workers) as executor:
        while next_index < len(grid) or pending:
            while next_index < len(grid) and len(pending) < n_workers:
                if cancel_event is not None and cancel_event.is_set():
                    break
                future = executor.submit(task, grid[next_index])
                pending[future] = next_index
                next_index += 1

            if not pending:
                _check_cancelled(cancel_event, completed, len(grid))

            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                # Re-raises TrainingError; the executor waits for the
                # grid points still running before the error propagates.
                results[index] = future.result()
                completed += 1
                logger.info(
                    "grid point %d/%d (value=%s) done", index + 1, len(grid), grid[index]
                )

    if completed < len(grid):
        _check_cancelled(cancel_event, completed, len(grid))
    return results


def _assemble(
    hp: Hyperparameter,
    grid: Sequence[GridValue],
    results: List[Any],
    return_curves: bool,
) -> Union[pd.DataFrame, List[Tuple[GridValue, pd.DataFrame]]]:
    if return_curves:
        return list(zip(grid, results))

    table = pd.DataFrame(list(results), index=pd.Index(list(grid), name=hp.name))
    return table


def sweep_hyperparameter(
    trainer: Any,
    X: Union[np.ndarray, pd.DataFrame],
    y: Union[np.ndarray, pd.Series],
    parameter: Union[str, Hyperparameter],
    grid_size: Optional[int] = None,
    values: Optional[Sequence[GridValue]] = None,
    measures: Optional[MeasureSelection] = None,
    return_curves: bool = False,
    n_jobs: Optional[int] = 1,
    backend: str = "process",
    cancel_event: Optional[threading.Event] = None,
    registry: Optional[MeasureRegistry] = None,
) -> Union[pd.DataFrame, List[Tuple[GridValue, pd.DataFrame]]]:
    """
    Sweep one hyperparameter and record the OOB performance at each value.

    Parameters
    ----------
    trainer : estimator or callable
        Either an (unfitted) scikit-learn RandomForest*, ExtraTrees* or
        Bagging* estimator (or Pipeline ending in one), which is wrapped
        in a ForestTrainer, or any callable ``trainer(params) -> fitted
        model``. Plain callables receive ``{parameter_name: value}`` keyed
        by the sweep name (e.g. 'feature_subset_size'); ForestTrainer
        instances translate it to the estimator parameter.
    X : array-like of shape (n_samples, n_features)
        Training features.
    y : array-like of shape (n_samples,)
        Training targets.
    parameter : str or Hyperparameter
        'feature_subset_size', 'subsample_fraction' or 'min_leaf_size'
        (or the matching forest parameter name).
    grid_size : int, optional
        Number of equally spaced grid points over the natural range.
        Defaults to DEFAULT_GRID_SIZE when no values are given.
        For a Pipeline the range of feature_subset_size uses the width of
        X after the preprocessing steps.
    values : sequence, optional
        Explicit grid values, swept in the given order.
    measures : str, Measure or sequence of them, optional
        Measures to evaluate. Defaults depend on the task.
    return_curves : bool, default=False
        If True, keep the full OOB curve of every grid point instead of
        only its final values.
    n_jobs : int, default=1
        Grid points evaluated concurrently. -1 uses all processors.
    backend : {'process', 'thread'}, default='process'
        Worker pool used when n_jobs > 1. The process backend requires the
        trainer and measures to be picklable.
    cancel_event : threading.Event, optional
        When set, no further grid point is started and
        SweepCancelledError is raised. Training in progress is never
        interrupted.
    registry : MeasureRegistry, optional
        Where measure ids are looked up. Defaults to the built-ins.

    Returns
    -------
    pd.DataFrame or list of (value, pd.DataFrame)
        By default a DataFrame indexed by the grid values (in grid order)
        with one column per measure. With return_curves=True, a list of
        (value, curve) pairs in grid order.

    Raises
    ------
    TrainingError
        If training fails for any grid value. The sweep is aborted.
    SweepCancelledError
        If cancel_event was set before every grid point ran.

    Examples
    --------
    >>> rf = create_oob_forest_classifier(num_estimators=200, random_state=0)
    >>> result = sweep_hyperparameter(
    ...     rf, X, y,
    ...     parameter="feature_subset_size",
    ...     grid_size=5,
    ...     measures=["mmce", "auc"],
    ...     n_jobs=-1,
    ... )
    >>> result["auc"].idxmax()
    """
    hp = get_hyperparameter(parameter)
    if backend not in _BACKENDS:
        raise ValueError(f"backend must be one of {sorted(_BACKENDS)}, got {backend!r}")
    n_workers = _resolve_n_jobs(n_jobs)

    if grid_size is None and values is None:
        grid_size = DEFAULT_GRID_SIZE
    if is_sklearn_ensemble(trainer):
        trainer = ForestTrainer(trainer, X, y)
    elif not callable(trainer):
        raise TypeError(
            "trainer must be a scikit-learn ensemble or a callable "
            f"trainer(params) -> model, got {type(trainer).__name__}"
        )

    n_samples, n_features = np.shape(X)[0], np.shape(X)[1]
    if hp.name == "feature_subset_size" and hasattr(trainer, "final_feature_count"):
        n_features = trainer.final_feature_count()
    grid = make_grid(hp, n_samples, n_features, grid_size=grid_size, values=values)

    if hasattr(trainer, "parameter_key"):
        parameter_key = trainer.parameter_key(hp)
    else:
        parameter_key = hp.name

    if registry is None:
        registry = default_registry()

    task = partial(
        evaluate_grid_point,
        trainer=trainer,
        parameter_key=parameter_key,
        X=X,
        y=y,
        measures=measures,
        registry=registry,
        return_curve=return_curves,
    )

    logger.info(
        "sweeping %s (%s) over %d grid points with %d worker(s): %s",
        hp.name,
        parameter_key,
        len(grid),
        n_workers,
        grid,
    )

    if n_workers == 1 or len(grid) == 1:
        results = _run_sequential(task, grid, cancel_event)
    else:
        results = _run_parallel(
            task, grid, min(n_workers, len(grid)), backend, cancel_event
        )

    logger.info("sweep of %s finished", hp.name)
    return _assemble(hp, grid, results, return_curves)
