"""
Reduce trained ensembles to canonical tensors.

Every downstream component works on an EnsembleTensors instance. This
module is the single place where the different ensemble representations
(in-memory arrays, scikit-learn models, user implementations of the
TrainedEnsemble interface) are normalized.
"""

import logging
from typing import Any, Optional, Sequence, Union
import numpy as np
import pandas as pd

from oobcurve.ensembles.base import EnsembleTensors, TaskType, TrainedEnsemble
from oobcurve.ensembles.sklearn_models import SklearnEnsemble, is_sklearn_ensemble
from oobcurve.exceptions import MissingBookkeepingError, UnsupportedModelError

logger = logging.getLogger(__name__)

_ENSEMBLE_METHODS = (
    "number_of_trees",
    "task_type",
    "class_labels",
    "inbag_matrix",
    "raw_predictions",
)


def _implements_ensemble_interface(model: Any) -> bool:
    return all(callable(getattr(model, name, None)) for name in _ENSEMBLE_METHODS)


def one_hot_votes(class_codes: np.ndarray, n_classes: int) -> np.ndarray:
    """
    Expand per-tree class codes into one-hot votes.

    Parameters
    ----------
    class_codes : np.ndarray of shape (n_samples, n_trees)
        Index of the class predicted by each tree for each sample.
    n_classes : int
        Number of classes K.

    Returns
    -------
    np.ndarray of shape (n_samples, n_trees, n_classes)
        1.0 at the predicted class, 0.0 elsewhere.

    Raises
    ------
    ValueError
        If a code is not an integer in ``0..n_classes - 1``.

    Examples
    --------
    >>> one_hot_votes(np.array([[0, 1]]), 2)
    array([[[1., 0.],
            [0., 1.]]])
    """
    codes = np.asarray(class_codes)
    if codes.ndim != 2:
        raise ValueError(
            f"class codes must be 2-dimensional (n_samples, n_trees), got shape {codes.shape}"
        )
    if codes.size:
        if not np.issubdtype(codes.dtype, np.number):
            raise ValueError("class codes must be integers")
        if not np.all(np.equal(np.mod(codes, 1), 0)):
            raise ValueError("class codes must be integers")
        if codes.min() < 0 or codes.max() >= n_classes:
            raise ValueError(f"class codes must lie in [0, {n_classes - 1}]")

    return (codes.astype(np.int64)[:, :, np.newaxis] == np.arange(n_classes)).astype(float)


def encode_labels(
    labels: Union[np.ndarray, pd.Series, Sequence[Any]],
    class_labels: Sequence[Any],
) -> np.ndarray:
    """
    Map class labels to their position in an ordered set of classes.

    Parameters
    ----------
    labels : array-like of shape (n_samples,)
        Labels to encode.
    class_labels : sequence
        Ordered, unique class labels.

    Returns
    -------
    np.ndarray of shape (n_samples,)
        Integer class codes.

    Raises
    ------
    ValueError
        If class_labels contains duplicates or a label is not one of them.
    """
    categories = pd.Index(list(class_labels))
    if not categories.is_unique:
        raise ValueError(f"class labels must be unique, got {list(class_labels)}")

    codes = categories.get_indexer(np.asarray(labels))
    if np.any(codes < 0):
        unknown = pd.unique(np.asarray(labels)[codes < 0])
        raise ValueError(
            f"labels {list(unknown)} are not among the class labels {list(class_labels)}"
        )
    return codes.astype(np.int64)


def tensors_from_ensemble(
    ensemble: Any,
    y: Optional[Union[np.ndarray, pd.Series]] = None,
) -> EnsembleTensors:
    """
    Build canonical tensors from an object with the TrainedEnsemble interface.

    Parameters
    ----------
    ensemble : TrainedEnsemble
        Any object exposing number_of_trees, task_type, class_labels,
        inbag_matrix and raw_predictions.
    y : array-like of shape (n_samples,), optional
        Training targets. Overrides ``ensemble.truth()`` when given.

    Returns
    -------
    EnsembleTensors

    Raises
    ------
    MissingBookkeepingError
        If the ensemble returns no in-bag matrix.
    UnsupportedTaskTypeError
        If the ensemble reports an unknown task type.
    ValueError
        If no targets are available or shapes disagree.
    """
    task_type = TaskType.coerce(ensemble.task_type())

    inbag = ensemble.inbag_matrix()
    if inbag is None:
        raise MissingBookkeepingError(
            "ensemble has to be trained with in-bag tracking enabled "
            "(no in-bag counts were retained)"
        )
    inbag = np.asarray(inbag)

    n_trees = ensemble.number_of_trees()
    if inbag.ndim != 2 or inbag.shape[1] != n_trees:
        raise ValueError(
            f"inbag matrix must have shape (n_samples, {n_trees}), got {inbag.shape}"
        )

    if y is None and hasattr(ensemble, "truth"):
        y = ensemble.truth()
    if y is None:
        raise ValueError("training targets y are required to compute OOB performance")
    if isinstance(y, pd.Series):
        y = y.values
    y = np.asarray(y)

    raw = np.asarray(ensemble.raw_predictions(all_trees=True))

    if task_type is TaskType.CLASSIFICATION:
        class_labels = ensemble.class_labels()
        if class_labels is None:
            raise ValueError("classification ensembles must report their class labels")
        class_labels = tuple(class_labels)
        if raw.ndim == 2:
            votes = one_hot_votes(raw, len(class_labels))
        else:
            votes = raw
        tensors = EnsembleTensors(
            inbag=inbag,
            predictions=votes,
            truth=encode_labels(y, class_labels),
            task_type=task_type,
            class_labels=class_labels,
        )
    else:
        tensors = EnsembleTensors(
            inbag=inbag,
            predictions=raw,
            truth=y,
            task_type=task_type,
        )

    logger.debug(
        "adapted %s: task=%s n_samples=%d n_trees=%d n_classes=%d",
        type(ensemble).__name__,
        tensors.task_type.value,
        tensors.n_samples,
        tensors.n_trees,
        tensors.n_classes,
    )
    return tensors


def adapt_ensemble(
    model: Any,
    X: Optional[Union[np.ndarray, pd.DataFrame]] = None,
    y: Optional[Union[np.ndarray, pd.Series]] = None,
) -> EnsembleTensors:
    """
    Normalize a trained ensemble into canonical tensors.

    Parameters
    ----------
    model : object
        One of:
        - EnsembleTensors (returned unchanged)
        - a TrainedEnsemble, e.g. ClassificationEnsemble/RegressionEnsemble
        - a fitted scikit-learn RandomForest*, ExtraTrees* or Bagging*
          model, or a Pipeline ending in one
    X : array-like of shape (n_samples, n_features), optional
        Training features. Required for scikit-learn models.
    y : array-like of shape (n_samples,), optional
        Training targets. Required for scikit-learn models, optional for
        ensembles that report their own truth.

    Returns
    -------
    EnsembleTensors
        Canonical in-bag, prediction and truth tensors.

    Raises
    ------
    UnsupportedModelError
        If the model is not a recognized ensemble.
    MissingBookkeepingError
        If in-bag counts were not retained at training time.

    Examples
    --------
    >>> from sklearn.ensemble import RandomForestRegressor
    >>> reg = RandomForestRegressor(n_estimators=100, random_state=0).fit(X, y)
    >>> tensors = adapt_ensemble(reg, X, y)
    >>> tensors.n_trees
    100
    """
    if isinstance(model, EnsembleTensors):
        return model

    if is_sklearn_ensemble(model):
        if X is None or y is None:
            raise ValueError(
                f"X and y (the training data) are required for {type(model).__name__}"
            )
        return tensors_from_ensemble(SklearnEnsemble(model, X, y))

    if isinstance(model, TrainedEnsemble) or _implements_ensemble_interface(model):
        return tensors_from_ensemble(model, y)

    raise UnsupportedModelError(
        "trained model must be a bagged-tree ensemble with in-bag bookkeeping, "
        f"got {type(model).__name__}"
    )
