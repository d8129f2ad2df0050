"""
Training of bagged-tree ensembles for OOB curves and sweeps.

This module provides factory functions for scikit-learn forests and
bagging ensembles configured so that their in-bag bookkeeping is
available (``bootstrap=True``), and ForestTrainer, the callable a
hyperparameter sweep uses to retrain an ensemble for every grid point.
"""

from typing import Any, Dict, Optional, Union
import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.ensemble import (
    BaggingClassifier,
    BaggingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.pipeline import Pipeline
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from oobcurve.ensembles.sklearn_models import is_sklearn_ensemble
from oobcurve.sweep.grid import Hyperparameter


def create_oob_forest_classifier(
    num_estimators: int = 500,
    criterion: str = "gini",
    max_depth: Optional[int] = None,
    min_samples_leaf: Union[int, float] = 1,
    max_features: Union[int, float, str] = "sqrt",
    max_samples: Optional[Union[int, float]] = None,
    class_weight: Optional[str] = None,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
) -> RandomForestClassifier:
    """
    Create a Random Forest classifier whose OOB curve can be computed.

    Parameters
    ----------
    num_estimators : int, default=500
        Number of trees in the forest.
    criterion : str, default='gini'
        Split criterion.
    max_depth : int, optional
        Maximum depth of trees. None means unlimited.
    min_samples_leaf : int or float, default=1
        Minimum samples required at a leaf node.
    max_features : int, float, or str, default='sqrt'
        Number of features to consider at each split.
    max_samples : int or float, optional
        Samples drawn per tree. None draws n_samples.
    class_weight : str, optional
        Class weights.
    n_jobs : int, optional
        Parallel jobs. -1 uses all processors.
    random_state : int, optional
        Random seed.

    Returns
    -------
    RandomForestClassifier
        Forest with bootstrapping enabled.

    Examples
    --------
    >>> clf = create_oob_forest_classifier(num_estimators=200, random_state=0)
    >>> clf.fit(X, y)
    >>> curve = compute_oob_curve(clf, measures=["mmce", "auc"], X=X, y=y)
    """
    return RandomForestClassifier(
        n_estimators=num_estimators,
        criterion=criterion,
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
        max_features=max_features,
        bootstrap=True,
        max_samples=max_samples,
        class_weight=class_weight,
        n_jobs=n_jobs,
        random_state=random_state,
    )


def create_oob_forest_regressor(
    num_estimators: int = 500,
    criterion: str = "squared_error",
    max_depth: Optional[int] = None,
    min_samples_leaf: Union[int, float] = 1,
    max_features: Union[int, float, str] = 1.0,
    max_samples: Optional[Union[int, float]] = None,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
) -> RandomForestRegressor:
    """
    Create a Random Forest regressor whose OOB curve can be computed.

    Parameters
    ----------
    num_estimators : int, default=500
        Number of trees.
    criterion : str, default='squared_error'
        Split criterion.
    max_depth : int, optional
        Maximum tree depth.
    min_samples_leaf : int or float, default=1
        Minimum samples at leaf.
    max_features : int, float, or str, default=1.0
        Features per split.
    max_samples : int or float, optional
        Samples drawn per tree.
    n_jobs : int, optional
        Parallel jobs.
    random_state : int, optional
        Random seed.

    Returns
    -------
    RandomForestRegressor
        Forest with bootstrapping enabled.
    """
    return RandomForestRegressor(
        n_estimators=num_estimators,
        criterion=criterion,
        max_depth=max_depth,
        min_samples_leaf=min_samples_leaf,
        max_features=max_features,
        bootstrap=True,
        max_samples=max_samples,
        n_jobs=n_jobs,
        random_state=random_state,
    )


def create_oob_bagging_classifier(
    base_estimator: Optional[Any] = None,
    num_estimators: int = 500,
    max_samples: Union[int, float] = 1.0,
    max_features: Union[int, float] = 1.0,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
) -> BaggingClassifier:
    """
    Create a bagging classifier whose OOB curve can be computed.

    Parameters
    ----------
    base_estimator : estimator, optional
        The estimator to bag. If None, uses DecisionTreeClassifier.
    num_estimators : int, default=500
        Number of base estimators.
    max_samples : int or float, default=1.0
        Samples drawn (with replacement) per estimator.
    max_features : int or float, default=1.0
        Features drawn per estimator.
    n_jobs : int, optional
        Parallel jobs.
    random_state : int, optional
        Random seed.

    Returns
    -------
    BaggingClassifier
        Bagging ensemble with bootstrapping enabled.
    """
    if base_estimator is None:
        base_estimator = DecisionTreeClassifier()

    return BaggingClassifier(
        estimator=base_estimator,
        n_estimators=num_estimators,
        max_samples=max_samples,
        max_features=max_features,
        bootstrap=True,
        n_jobs=n_jobs,
        random_state=random_state,
    )


def create_oob_bagging_regressor(
    base_estimator: Optional[Any] = None,
    num_estimators: int = 500,
    max_samples: Union[int, float] = 1.0,
    max_features: Union[int, float] = 1.0,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
) -> BaggingRegressor:
    """
    Create a bagging regressor whose OOB curve can be computed.

    Parameters
    ----------
    base_estimator : estimator, optional
        The estimator to bag. If None, uses DecisionTreeRegressor.
    num_estimators : int, default=500
        Number of base estimators.
    max_samples : int or float, default=1.0
        Samples per estimator.
    max_features : int or float, default=1.0
        Features per estimator.
    n_jobs : int, optional
        Parallel jobs.
    random_state : int, optional
        Random seed.

    Returns
    -------
    BaggingRegressor
        Bagging ensemble with bootstrapping enabled.
    """
    if base_estimator is None:
        base_estimator = DecisionTreeRegressor()

    return BaggingRegressor(
        estimator=base_estimator,
        n_estimators=num_estimators,
        max_samples=max_samples,
        max_features=max_features,
        bootstrap=True,
        n_jobs=n_jobs,
        random_state=random_state,
    )


class ForestTrainer:
    """
    Retrain a scikit-learn ensemble with overridden hyperparameters.

    Calling the trainer with a dict of parameters clones the base
    estimator, applies the parameters with ``set_params`` and fits the
    clone on the stored training data. The base estimator is never
    modified.

    Parameters
    ----------
    estimator : estimator
        Unfitted (or fitted) RandomForest*, ExtraTrees* or Bagging*
        estimator, or a Pipeline ending in one.
    X : array-like of shape (n_samples, n_features)
        Training features.
    y : array-like of shape (n_samples,)
        Training targets.
    fit_params : dict, optional
        Extra keyword arguments for ``fit`` (e.g. sample_weight).

    Examples
    --------
    >>> trainer = ForestTrainer(create_oob_forest_classifier(num_estimators=100), X, y)
    >>> model = trainer({"max_features": 3})
    >>> model.max_features
    3
    """

    def __init__(
        self,
        estimator: Any,
        X: Union[np.ndarray, pd.DataFrame],
        y: Union[np.ndarray, pd.Series],
        fit_params: Optional[Dict[str, Any]] = None,
    ):
        if not is_sklearn_ensemble(estimator):
            raise TypeError(
                "estimator must be a scikit-learn random forest, extra-trees or "
                f"bagging ensemble, got {type(estimator).__name__}"
            )
        self.estimator = estimator
        self.X = X
        self.y = y
        self.fit_params = dict(fit_params or {})

    def parameter_key(self, hyperparameter: Hyperparameter) -> str:
        """
        Name under which ``set_params`` expects the hyperparameter.
        """
        final = self.estimator
        prefix = ""
        if isinstance(final, Pipeline):
            prefix = f"{final.steps[-1][0]}__"
            final = final.steps[-1][1]

        if isinstance(final, (BaggingClassifier, BaggingRegressor)):
            return prefix + hyperparameter.bagging_param
        return prefix + hyperparameter.forest_param

    def final_feature_count(self) -> int:
        """
        Number of features seen by the final ensemble.

        For a Pipeline the preceding steps are fitted on a clone and applied
        to X, so feature-changing steps (e.g. PCA) are accounted for.
        """
        if isinstance(self.estimator, Pipeline) and len(self.estimator.steps) > 1:
            preprocessing = clone(self.estimator[:-1])
            return np.shape(preprocessing.fit_transform(self.X, self.y))[1]
        return np.shape(self.X)[1]

    def __call__(self, params: Dict[str, Any]) -> Any:
        model = clone(self.estimator)
        model.set_params(**params)
        model.fit(self.X, self.y, **self.fit_params)
        return model

    def __repr__(self) -> str:
        return f"ForestTrainer({self.estimator!r})"
