"""
Core data structures for bagged-tree ensembles.

This module defines the task types understood by the package, the
canonical tensor representation that every supported ensemble is reduced
to, and the abstract interface an externally trained ensemble has to
satisfy.

Canonical shapes
----------------
- ``inbag``: (n_samples, n_trees) non-negative integer counts. A zero
  means the sample was out-of-bag (OOB) for that tree.
- ``predictions``: (n_samples, n_trees) per-tree responses for regression,
  or (n_samples, n_trees, n_classes) one-hot votes for classification.
- ``truth``: (n_samples,) float targets for regression, integer class
  codes in ``0..n_classes - 1`` for classification.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd

from oobcurve.exceptions import UnsupportedTaskTypeError


class TaskType(str, Enum):
    """Learning task of an ensemble."""

    CLASSIFICATION = "classif"
    REGRESSION = "regr"

    @classmethod
    def coerce(cls, value: Union[str, "TaskType"]) -> "TaskType":
        """
        Convert a task type or one of its common spellings to a TaskType.

        Parameters
        ----------
        value : str or TaskType
            'classif'/'classification' or 'regr'/'regression'.

        Returns
        -------
        TaskType

        Raises
        ------
        UnsupportedTaskTypeError
            If the value names neither classification nor regression.
        """
        if isinstance(value, cls):
            return value
        aliases = {
            "classif": cls.CLASSIFICATION,
            "classification": cls.CLASSIFICATION,
            "regr": cls.REGRESSION,
            "regression": cls.REGRESSION,
        }
        key = str(value).lower() if value is not None else None
        if key not in aliases:
            raise UnsupportedTaskTypeError(
                f"task type must be classification or regression, got {value!r}"
            )
        return aliases[key]


def _as_readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class EnsembleTensors:
    """
    Canonical, immutable view of a trained ensemble on its training data.

    Parameters
    ----------
    inbag : array-like of shape (n_samples, n_trees)
        In-bag count of every sample for every tree.
    predictions : array-like
        Shape (n_samples, n_trees) for regression, (n_samples, n_trees,
        n_classes) for classification.
    truth : array-like of shape (n_samples,)
        Targets; integer class codes for classification.
    task_type : TaskType or str
        Learning task.
    class_labels : sequence, optional
        Ordered class labels. Required for classification, position k
        labels class code k.

    Raises
    ------
    ValueError
        If shapes disagree, in-bag counts are negative or class codes fall
        outside ``0..n_classes - 1``.
    """

    inbag: np.ndarray
    predictions: np.ndarray
    truth: np.ndarray
    task_type: TaskType
    class_labels: Optional[Tuple[Any, ...]] = None

    def __post_init__(self):
        task_type = TaskType.coerce(self.task_type)
        inbag = np.asarray(self.inbag)
        predictions = np.asarray(self.predictions, dtype=float)
        truth = np.asarray(self.truth)

        if inbag.ndim != 2:
            raise ValueError(
                f"inbag must be 2-dimensional (n_samples, n_trees), got shape {inbag.shape}"
            )
        if inbag.size and not np.issubdtype(inbag.dtype, np.number):
            raise ValueError(f"inbag must be numeric, got dtype {inbag.dtype}")
        if np.any(inbag < 0):
            raise ValueError("inbag counts must be non-negative")
        if truth.ndim != 1 or truth.shape[0] != inbag.shape[0]:
            raise ValueError(
                f"truth must have shape ({inbag.shape[0]},), got {truth.shape}"
            )
        if inbag.shape[1] < 1:
            raise ValueError("ensemble must contain at least one tree")

        class_labels = self.class_labels
        if task_type is TaskType.CLASSIFICATION:
            if class_labels is None or len(class_labels) < 1:
                raise ValueError("class_labels are required for classification")
            class_labels = tuple(class_labels)
            expected = inbag.shape + (len(class_labels),)
            if predictions.shape != expected:
                raise ValueError(
                    f"classification predictions must have shape {expected}, "
                    f"got {predictions.shape}"
                )
            if not np.issubdtype(truth.dtype, np.integer):
                raise ValueError(
                    f"classification truth must hold integer class codes, got dtype {truth.dtype}"
                )
            if truth.size and (truth.min() < 0 or truth.max() >= len(class_labels)):
                raise ValueError(
                    f"class codes must lie in [0, {len(class_labels) - 1}]"
                )
        else:
            if predictions.shape != inbag.shape:
                raise ValueError(
                    f"regression predictions must have shape {inbag.shape}, "
                    f"got {predictions.shape}"
                )
            truth = truth.astype(float)
            class_labels = None

        object.__setattr__(self, "task_type", task_type)
        object.__setattr__(self, "inbag", _as_readonly(inbag.astype(np.int64)))
        object.__setattr__(self, "predictions", _as_readonly(predictions))
        object.__setattr__(self, "truth", _as_readonly(truth))
        object.__setattr__(self, "class_labels", class_labels)

    @property
    def n_samples(self) -> int:
        return self.inbag.shape[0]

    @property
    def n_trees(self) -> int:
        return self.inbag.shape[1]

    @property
    def n_classes(self) -> int:
        return 0 if self.class_labels is None else len(self.class_labels)

    @property
    def is_classification(self) -> bool:
        return self.task_type is TaskType.CLASSIFICATION


class TrainedEnsemble(ABC):
    """
    Interface of an externally trained bagged-tree ensemble.

    Implementations expose the bookkeeping needed for OOB curves. The
    package only reads from an ensemble, it never mutates one.
    """

    @abstractmethod
    def number_of_trees(self) -> int:
        """Number of trees T."""

    @abstractmethod
    def task_type(self) -> TaskType:
        """Learning task of the ensemble."""

    @abstractmethod
    def class_labels(self) -> Optional[Sequence[Any]]:
        """Ordered class labels (classification only, else None)."""

    @abstractmethod
    def inbag_matrix(self) -> Optional[np.ndarray]:
        """In-bag counts of shape (n_samples, T), or None if not retained."""

    @abstractmethod
    def raw_predictions(self, all_trees: bool = True) -> np.ndarray:
        """
        Per-tree predictions on the training samples.

        Class codes of shape (n_samples, T) (or one-hot votes of shape
        (n_samples, T, K)) for classification, responses of shape
        (n_samples, T) for regression.
        """

    @abstractmethod
    def truth(self) -> Optional[np.ndarray]:
        """Training targets, as labels for classification."""


class _ArrayEnsemble(TrainedEnsemble):

    def __init__(
        self,
        inbag: Optional[Union[np.ndarray, pd.DataFrame]],
        predictions: Union[np.ndarray, pd.DataFrame],
        truth: Optional[Union[np.ndarray, pd.Series]] = None,
    ):
        self._inbag = None if inbag is None else np.asarray(inbag)
        self._predictions = np.asarray(predictions)
        self._truth = None if truth is None else np.asarray(truth)
        if self._predictions.ndim < 2:
            raise ValueError(
                f"predictions must be at least 2-dimensional, got shape {self._predictions.shape}"
            )

    def number_of_trees(self) -> int:
        return self._predictions.shape[1]

    def inbag_matrix(self) -> Optional[np.ndarray]:
        return self._inbag

    def raw_predictions(self, all_trees: bool = True) -> np.ndarray:
        if not all_trees:
            raise ValueError("per-tree predictions are required (all_trees=True)")
        return self._predictions

    def truth(self) -> Optional[np.ndarray]:
        return self._truth


class ClassificationEnsemble(_ArrayEnsemble):
    """
    In-memory classification ensemble built from plain arrays.

    Parameters
    ----------
    inbag : array-like of shape (n_samples, n_trees) or None
        In-bag counts. None models an ensemble trained without in-bag
        tracking.
    predictions : array-like
        Class codes of shape (n_samples, n_trees) indexing ``class_labels``,
        or one-hot votes of shape (n_samples, n_trees, n_classes).
    truth : array-like of shape (n_samples,), optional
        True labels, drawn from ``class_labels``.
    class_labels : sequence, optional
        Ordered class labels. Defaults to the sorted unique values of
        ``truth``.

    Examples
    --------
    >>> ens = ClassificationEnsemble(
    ...     inbag=[[0, 1], [1, 0]],
    ...     predictions=[[0, 1], [1, 1]],
    ...     truth=["a", "b"],
    ...     class_labels=["a", "b"],
    ... )
    >>> ens.number_of_trees()
    2
    """

    def __init__(
        self,
        inbag: Optional[Union[np.ndarray, pd.DataFrame]],
        predictions: Union[np.ndarray, pd.DataFrame],
        truth: Optional[Union[np.ndarray, pd.Series]] = None,
        class_labels: Optional[Sequence[Any]] = None,
    ):
        super().__init__(inbag, predictions, truth)
        if class_labels is None:
            if self._truth is None:
                raise ValueError("class_labels or truth must be given")
            class_labels = np.unique(self._truth).tolist()
        self._class_labels = tuple(class_labels)

    def task_type(self) -> TaskType:
        return TaskType.CLASSIFICATION

    def class_labels(self) -> Optional[Sequence[Any]]:
        return self._class_labels


class RegressionEnsemble(_ArrayEnsemble):
    """
    In-memory regression ensemble built from plain arrays.

    Parameters
    ----------
    inbag : array-like of shape (n_samples, n_trees) or None
        In-bag counts.
    predictions : array-like of shape (n_samples, n_trees)
        Per-tree responses.
    truth : array-like of shape (n_samples,), optional
        True targets.
    """

    def task_type(self) -> TaskType:
        return TaskType.REGRESSION

    def class_labels(self) -> Optional[Sequence[Any]]:
        return None
