"""
Adapters for fitted scikit-learn bagged-tree ensembles.

scikit-learn does not store in-bag counts directly, but every bagged
ensemble can regenerate the indices drawn for each estimator through
``estimators_samples_``. Counting those indices per sample recovers the
in-bag matrix, provided the model was fitted with ``bootstrap=True``.
"""

from typing import Any, Optional, Sequence, Tuple, Union
import numpy as np
import pandas as pd
from sklearn.base import is_classifier
from sklearn.ensemble import (
    BaggingClassifier,
    BaggingRegressor,
    ExtraTreesClassifier,
    ExtraTreesRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.pipeline import Pipeline

from oobcurve.ensembles.base import TaskType, TrainedEnsemble
from oobcurve.exceptions import MissingBookkeepingError, UnsupportedModelError

SUPPORTED_ESTIMATORS = (
    RandomForestClassifier,
    RandomForestRegressor,
    ExtraTreesClassifier,
    ExtraTreesRegressor,
    BaggingClassifier,
    BaggingRegressor,
)

_BAGGING_ESTIMATORS = (BaggingClassifier, BaggingRegressor)


def is_sklearn_ensemble(model: Any) -> bool:
    """
    Check whether a model is a supported scikit-learn ensemble.

    Pipelines count when their final step is a supported ensemble.
    """
    if isinstance(model, Pipeline):
        return isinstance(model.steps[-1][1], SUPPORTED_ESTIMATORS)
    return isinstance(model, SUPPORTED_ESTIMATORS)


def unwrap_pipeline(
    model: Any,
    X: Union[np.ndarray, pd.DataFrame],
) -> Tuple[Any, Union[np.ndarray, pd.DataFrame]]:
    """
    Strip a fitted Pipeline down to its final ensemble.

    Parameters
    ----------
    model : estimator
        A supported ensemble or a Pipeline ending in one.
    X : array-like of shape (n_samples, n_features)
        Training features as passed to the pipeline.

    Returns
    -------
    tuple of (estimator, array-like)
        The final ensemble and the features it was actually trained on.
    """
    if not isinstance(model, Pipeline):
        return model, X

    if len(model.steps) > 1:
        X = model[:-1].transform(X)
    return model.steps[-1][1], X


class SklearnEnsemble(TrainedEnsemble):
    """
    TrainedEnsemble view of a fitted scikit-learn forest or bagging model.

    Parameters
    ----------
    model : estimator
        Fitted RandomForest*, ExtraTrees* or Bagging* estimator, or a
        Pipeline whose final step is one.
    X : array-like of shape (n_samples, n_features)
        The data the model was trained on, in training row order.
    y : array-like of shape (n_samples,), optional
        The training targets.

    Raises
    ------
    UnsupportedModelError
        If the model is not a supported ensemble, is not fitted or has
        several outputs.

    Notes
    -----
    Per-tree predictions of a classification forest are class codes into
    the ensemble's ``classes_``: scikit-learn encodes the targets before
    growing the trees, so code k always refers to ``classes_[k]``.

    Examples
    --------
    >>> from sklearn.ensemble import RandomForestClassifier
    >>> clf = RandomForestClassifier(n_estimators=50, random_state=0).fit(X, y)
    >>> ens = SklearnEnsemble(clf, X, y)
    >>> inbag = ens.inbag_matrix()  # shape (n_samples, 50)
    """

    def __init__(
        self,
        model: Any,
        X: Union[np.ndarray, pd.DataFrame],
        y: Optional[Union[np.ndarray, pd.Series]] = None,
    ):
        model, X = unwrap_pipeline(model, X)

        if not isinstance(model, SUPPORTED_ESTIMATORS):
            raise UnsupportedModelError(
                "model must be a scikit-learn random forest, extra-trees or "
                f"bagging ensemble, got {type(model).__name__}"
            )
        if not hasattr(model, "estimators_"):
            raise UnsupportedModelError(
                f"{type(model).__name__} has not been fitted yet"
            )
        if getattr(model, "n_outputs_", 1) > 1:
            raise UnsupportedModelError(
                f"multi-output models are not supported, got n_outputs_={model.n_outputs_}"
            )

        if isinstance(X, pd.DataFrame):
            X = X.values
        elif not hasattr(X, "shape"):
            X = np.asarray(X)
        if y is not None and isinstance(y, pd.Series):
            y = y.values

        self.model = model
        self._X = X
        self._y = None if y is None else np.asarray(y)

    @property
    def n_samples(self) -> int:
        return self._X.shape[0]

    def number_of_trees(self) -> int:
        return len(self.model.estimators_)

    def task_type(self) -> TaskType:
        if is_classifier(self.model):
            return TaskType.CLASSIFICATION
        return TaskType.REGRESSION

    def class_labels(self) -> Optional[Sequence[Any]]:
        if not is_classifier(self.model):
            return None
        return tuple(self.model.classes_)

    def inbag_matrix(self) -> np.ndarray:
        """
        Rebuild the in-bag count matrix from the drawn sample indices.

        Returns
        -------
        np.ndarray of shape (n_samples, n_trees)
            How often each sample was drawn for each estimator.

        Raises
        ------
        MissingBookkeepingError
            If the model was fitted without bootstrapping or cannot
            regenerate its sample indices.
        """
        if not getattr(self.model, "bootstrap", False):
            raise MissingBookkeepingError(
                f"{type(self.model).__name__} has to be trained with bootstrap=True "
                "to have out-of-bag samples"
            )
        try:
            drawn = self.model.estimators_samples_
        except AttributeError as exc:
            raise MissingBookkeepingError(
                f"{type(self.model).__name__} does not expose estimators_samples_; "
                "scikit-learn >= 1.4 is required"
            ) from exc

        n_samples = self.n_samples
        n_trained = getattr(self.model, "_n_samples", None)
        if n_trained is not None and n_trained != n_samples:
            raise ValueError(
                f"X has {n_samples} rows but the model was trained on {n_trained} samples"
            )

        columns = []
        for indices in drawn:
            counts = np.bincount(np.asarray(indices, dtype=np.int64), minlength=n_samples)
            if counts.shape[0] != n_samples:
                raise ValueError(
                    f"X has {n_samples} rows but the model was trained on at least "
                    f"{counts.shape[0]} samples"
                )
            columns.append(counts)

        return np.column_stack(columns)

    def raw_predictions(self, all_trees: bool = True) -> np.ndarray:
        """
        Predict the training samples with every estimator separately.

        Returns
        -------
        np.ndarray of shape (n_samples, n_trees)
            Class codes for classification, responses for regression.
        """
        if not all_trees:
            raise ValueError("per-tree predictions are required (all_trees=True)")

        X = self._X
        if isinstance(self.model, _BAGGING_ESTIMATORS):
            per_tree = [
                estimator.predict(X[:, features])
                for estimator, features in zip(
                    self.model.estimators_, self.model.estimators_features_
                )
            ]
        else:
            per_tree = [estimator.predict(X) for estimator in self.model.estimators_]

        predictions = np.column_stack(per_tree)
        if is_classifier(self.model):
            return predictions.astype(np.int64)
        return predictions.astype(float)

    def truth(self) -> Optional[np.ndarray]:
        return self._y
