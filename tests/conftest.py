"""
Pytest configuration and shared fixtures.

This conftest.py provides:
- Custom markers
- Small hand-built ensembles with known OOB aggregates
- Synthetic classification/regression datasets and fitted forests
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
from sklearn.datasets import make_blobs, make_classification, make_regression
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor

from oobcurve.ensembles.base import EnsembleTensors


# ─── Pytest Configuration ────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, hand-built ensembles)")
    config.addinivalue_line("markers", "integration: Integration tests (fitted scikit-learn models)")
    config.addinivalue_line("markers", "slow: Slow tests (process pools, larger forests)")


# ─── Hand-built Ensembles ────────────────────────────────────────────


@pytest.fixture
def regression_tensors() -> EnsembleTensors:
    """Three samples, two trees.

    Sample 0 is OOB for tree 1 only, sample 1 for tree 2 only and sample 2
    for both, so the aggregates are [10, NaN, 50] after one tree and
    [10, 40, 55] after two.
    """
    return EnsembleTensors(
        inbag=np.array([[0, 1], [1, 0], [0, 0]]),
        predictions=np.array([[10.0, 20.0], [30.0, 40.0], [50.0, 60.0]]),
        truth=np.array([10.0, 40.0, 50.0]),
        task_type="regr",
    )


@pytest.fixture
def random_classification_tensors() -> EnsembleTensors:
    """Random 3-class ensemble with Poisson(1) in-bag counts."""
    rng = np.random.default_rng(42)
    n_samples, n_trees, n_classes = 40, 25, 3
    codes = rng.integers(0, n_classes, size=(n_samples, n_trees))
    votes = (codes[:, :, np.newaxis] == np.arange(n_classes)).astype(float)
    return EnsembleTensors(
        inbag=rng.poisson(1.0, size=(n_samples, n_trees)),
        predictions=votes,
        truth=rng.integers(0, n_classes, size=n_samples),
        task_type="classif",
        class_labels=("a", "b", "c"),
    )


# ─── Datasets ────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def classification_data():
    X, y = make_classification(
        n_samples=200,
        n_features=6,
        n_informative=4,
        n_redundant=0,
        random_state=0,
    )
    return X, y


@pytest.fixture(scope="session")
def separable_data():
    """Two well separated blobs, trivially learnable."""
    X, y = make_blobs(
        n_samples=150,
        centers=[[-10.0, -10.0], [10.0, 10.0]],
        cluster_std=1.0,
        random_state=0,
    )
    return X, y


@pytest.fixture(scope="session")
def regression_data():
    X, y = make_regression(
        n_samples=150,
        n_features=5,
        n_informative=3,
        noise=5.0,
        random_state=0,
    )
    return X, y


# ─── Fitted Models ───────────────────────────────────────────────────


@pytest.fixture(scope="session")
def fitted_classifier(classification_data):
    X, y = classification_data
    return RandomForestClassifier(n_estimators=30, oob_score=True, random_state=0).fit(X, y)


@pytest.fixture(scope="session")
def fitted_regressor(regression_data):
    X, y = regression_data
    return RandomForestRegressor(n_estimators=30, oob_score=True, random_state=0).fit(X, y)
