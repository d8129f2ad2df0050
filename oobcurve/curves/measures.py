"""
Performance measures and their evaluation on OOB aggregates.

A measure is a plain function ``f(predictions, truth, task_type) -> float``
identified by a stable string id. For classification ``predictions`` is
the (n_samples, n_classes) matrix of OOB vote shares and ``truth`` holds
integer class codes; for regression both are (n_samples,) floats.

Measures are looked up in an explicit MeasureRegistry passed by the
caller. ``default_registry()`` builds a fresh registry holding the
built-ins; registering user measures never touches shared state.

Built-in measures
-----------------
classification: mmce, acc, auc, brier, logloss
regression: mse, rmse, mae, medae, rsq

Undefined aggregates (NaN, from samples without an OOB tree yet) make
every built-in return NaN for that step. User measures receive the NaN
values unchanged and decide for themselves.
"""

from dataclasses import dataclass, field
from functools import wraps
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Union
import numpy as np
from sklearn.metrics import (
    accuracy_score,
    brier_score_loss,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    median_absolute_error,
    r2_score,
    roc_auc_score,
)

from oobcurve.ensembles.base import TaskType
from oobcurve.exceptions import MeasureEvaluationError

MeasureFunction = Callable[[np.ndarray, np.ndarray, TaskType], float]

_CLASSIF = frozenset({TaskType.CLASSIFICATION})
_REGR = frozenset({TaskType.REGRESSION})


@dataclass(frozen=True)
class Measure:
    """
    A named performance measure.

    Parameters
    ----------
    id : str
        Stable identifier, used as the column name of curves.
    function : callable
        ``function(predictions, truth, task_type) -> float``.
    task_types : frozenset of TaskType
        Tasks the measure can evaluate.
    minimize : bool, default=True
        Whether lower values are better.
    name : str, optional
        Human readable name, defaults to the id.
    """

    id: str
    function: MeasureFunction
    task_types: FrozenSet[TaskType] = field(
        default_factory=lambda: frozenset(TaskType)
    )
    minimize: bool = True
    name: str = ""

    def __post_init__(self):
        if not self.id:
            raise ValueError("measure id must be a non-empty string")
        object.__setattr__(
            self, "task_types", frozenset(TaskType.coerce(t) for t in self.task_types)
        )
        if not self.name:
            object.__setattr__(self, "name", self.id)

    def supports(self, task_type: Union[str, TaskType]) -> bool:
        return TaskType.coerce(task_type) in self.task_types

    def __call__(self, predictions: np.ndarray, truth: np.ndarray, task_type: TaskType) -> float:
        return self.function(predictions, truth, task_type)


def measure_from_callable(
    measure_id: str,
    function: MeasureFunction,
    task_types: Iterable[Union[str, TaskType]] = ("classif", "regr"),
    minimize: bool = True,
    name: Optional[str] = None,
) -> Measure:
    """
    Wrap a user function as a Measure.

    Parameters
    ----------
    measure_id : str
        Identifier of the measure.
    function : callable
        ``function(predictions, truth, task_type) -> float``. It receives
        NaN entries for samples without an OOB estimate.
    task_types : iterable of str or TaskType, default=('classif', 'regr')
        Tasks the measure supports.
    minimize : bool, default=True
        Whether lower values are better.
    name : str, optional
        Display name.

    Returns
    -------
    Measure

    Examples
    --------
    >>> def max_error(pred, truth, task_type):
    ...     return float(np.max(np.abs(pred - truth)))
    >>> registry = default_registry()
    >>> registry.register(measure_from_callable("maxerr", max_error, ["regr"]))
    """
    return Measure(
        id=measure_id,
        function=function,
        task_types=frozenset(TaskType.coerce(t) for t in task_types),
        minimize=minimize,
        name=name or measure_id,
    )


def response_from_probabilities(probabilities: np.ndarray) -> np.ndarray:
    """
    Class code with the highest vote share for each sample.

    Ties are broken in favour of the lowest class code.
    """
    return np.argmax(probabilities, axis=1)


def _nan_if_undefined(function: MeasureFunction) -> MeasureFunction:
    @wraps(function)
    def wrapper(predictions, truth, task_type):
        if np.isnan(predictions).any():
            return np.nan
        return function(predictions, truth, task_type)

    return wrapper


@_nan_if_undefined
def _mmce(probabilities, truth, task_type):
    return 1.0 - accuracy_score(truth, response_from_probabilities(probabilities))


@_nan_if_undefined
def _acc(probabilities, truth, task_type):
    return accuracy_score(truth, response_from_probabilities(probabilities))


@_nan_if_undefined
def _auc(probabilities, truth, task_type):
    n_classes = probabilities.shape[1]
    if n_classes == 2:
        return roc_auc_score(truth, probabilities[:, 1])
    return roc_auc_score(
        truth, probabilities, multi_class="ovr", labels=np.arange(n_classes)
    )


@_nan_if_undefined
def _brier(probabilities, truth, task_type):
    n_classes = probabilities.shape[1]
    if n_classes == 2:
        return brier_score_loss(truth, probabilities[:, 1], pos_label=1)
    indicator = truth[:, np.newaxis] == np.arange(n_classes)
    return np.mean(np.sum((probabilities - indicator) ** 2, axis=1))


@_nan_if_undefined
def _logloss(probabilities, truth, task_type):
    return log_loss(truth, probabilities, labels=np.arange(probabilities.shape[1]))


@_nan_if_undefined
def _mse(predictions, truth, task_type):
    return mean_squared_error(truth, predictions)


@_nan_if_undefined
def _rmse(predictions, truth, task_type):
    return np.sqrt(mean_squared_error(truth, predictions))


@_nan_if_undefined
def _mae(predictions, truth, task_type):
    return mean_absolute_error(truth, predictions)


@_nan_if_undefined
def _medae(predictions, truth, task_type):
    return median_absolute_error(truth, predictions)


@_nan_if_undefined
def _rsq(predictions, truth, task_type):
    return r2_score(truth, predictions)


BUILTIN_MEASURES = (
    Measure("mmce", _mmce, _CLASSIF, True, "Mean misclassification error"),
    Measure("acc", _acc, _CLASSIF, False, "Accuracy"),
    Measure("auc", _auc, _CLASSIF, False, "Area under the ROC curve"),
    Measure("brier", _brier, _CLASSIF, True, "Brier score"),
    Measure("logloss", _logloss, _CLASSIF, True, "Logarithmic loss"),
    Measure("mse", _mse, _REGR, True, "Mean squared error"),
    Measure("rmse", _rmse, _REGR, True, "Root mean squared error"),
    Measure("mae", _mae, _REGR, True, "Mean absolute error"),
    Measure("medae", _medae, _REGR, True, "Median absolute error"),
    Measure("rsq", _rsq, _REGR, False, "Coefficient of determination"),
)


class MeasureRegistry:
    """
    Explicit mapping from measure id to Measure.

    Parameters
    ----------
    measures : iterable of Measure, optional
        Initial content.

    Examples
    --------
    >>> registry = MeasureRegistry(BUILTIN_MEASURES)
    >>> "auc" in registry
    True
    >>> [m.id for m in registry.resolve(["mse", "mae"])]
    ['mse', 'mae']
    """

    def __init__(self, measures: Iterable[Measure] = ()):
        self._measures: Dict[str, Measure] = {}
        for measure in measures:
            self.register(measure)

    def register(self, measure: Measure, overwrite: bool = False) -> Measure:
        if not isinstance(measure, Measure):
            raise TypeError(f"expected a Measure, got {type(measure).__name__}")
        if measure.id in self._measures and not overwrite:
            raise ValueError(
                f"measure '{measure.id}' is already registered; pass overwrite=True to replace it"
            )
        self._measures[measure.id] = measure
        return measure

    def get(self, measure_id: str) -> Measure:
        try:
            return self._measures[measure_id]
        except KeyError:
            raise MeasureEvaluationError(
                f"unknown measure '{measure_id}', available: {self.ids}"
            ) from None

    def resolve(self, measures: Union[str, Measure, Sequence[Union[str, Measure]]]) -> List[Measure]:
        """
        Turn ids and/or Measure objects into a list of Measures, in order.
        """
        if isinstance(measures, (str, Measure)):
            measures = [measures]
        return [m if isinstance(m, Measure) else self.get(m) for m in measures]

    def for_task(self, task_type: Union[str, TaskType]) -> List[Measure]:
        return [m for m in self._measures.values() if m.supports(task_type)]

    @property
    def ids(self) -> List[str]:
        return list(self._measures)

    def __contains__(self, measure_id: object) -> bool:
        return measure_id in self._measures

    def __iter__(self) -> Iterator[Measure]:
        return iter(self._measures.values())

    def __len__(self) -> int:
        return len(self._measures)

    def __repr__(self) -> str:
        return f"MeasureRegistry({self.ids})"


def default_registry() -> MeasureRegistry:
    """Fresh registry holding the built-in measures."""
    return MeasureRegistry(BUILTIN_MEASURES)


def _readonly_view(array: np.ndarray) -> np.ndarray:
    view = np.asarray(array).view()
    view.setflags(write=False)
    return view


def evaluate_measures(
    predictions: np.ndarray,
    truth: np.ndarray,
    task_type: Union[str, TaskType],
    measures: Union[str, Measure, Sequence[Union[str, Measure]]],
    registry: Optional[MeasureRegistry] = None,
) -> Dict[str, float]:
    """
    Evaluate measures on one step of aggregated OOB predictions.

    Parameters
    ----------
    predictions : np.ndarray
        (n_samples, n_classes) vote shares for classification,
        (n_samples,) responses for regression. May contain NaN.
    truth : np.ndarray of shape (n_samples,)
        Class codes for classification, targets for regression.
    task_type : str or TaskType
        Learning task.
    measures : str, Measure or sequence of them
        Measures to evaluate, in output order.
    registry : MeasureRegistry, optional
        Where measure ids are looked up. Defaults to the built-ins.

    Returns
    -------
    dict
        Measure id -> value, in the requested order.

    Raises
    ------
    MeasureEvaluationError
        If a measure is unknown, does not support the task, raises, or
        returns something that is not a scalar.
    """
    task_type = TaskType.coerce(task_type)
    if registry is None:
        registry = default_registry()

    predictions = _readonly_view(predictions)
    truth = _readonly_view(truth)

    results = {}
    for measure in registry.resolve(measures):
        if not measure.supports(task_type):
            raise MeasureEvaluationError(
                f"measure '{measure.id}' does not support {task_type.value} tasks"
            )
        try:
            value = measure(predictions, truth, task_type)
        except MeasureEvaluationError:
            raise
        except Exception as exc:
            raise MeasureEvaluationError(
                f"measure '{measure.id}' rejected the predictions: {exc}"
            ) from exc

        if np.ndim(value) != 0:
            raise MeasureEvaluationError(
                f"measure '{measure.id}' must return a scalar, got shape {np.shape(value)}"
            )
        try:
            results[measure.id] = float(value)
        except (TypeError, ValueError) as exc:
            raise MeasureEvaluationError(
                f"measure '{measure.id}' returned a non-numeric value {value!r}"
            ) from exc

    return results
