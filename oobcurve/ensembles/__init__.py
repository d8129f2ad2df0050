"""
Ensemble adapters for out-of-bag curves.

This module turns trained bagged-tree ensembles into the dense tensors the
OOB aggregation works on: per-tree in-bag counts, per-tree predictions on
the training samples and the training truth.

Key Concepts:
- **In-bag matrix**: how often each training sample was drawn for each tree
- **Out-of-bag (OOB)**: a sample is OOB for a tree if it was never drawn
- **Class codes**: classification labels are encoded as 0..K-1 following
  the order of the ensemble's class labels

Supported sources are scikit-learn random forests, extra-trees and bagging
ensembles (optionally at the end of a Pipeline), any object implementing
the TrainedEnsemble interface, and prebuilt EnsembleTensors.
"""

from oobcurve.ensembles.base import (
    TaskType,
    EnsembleTensors,
    TrainedEnsemble,
    ClassificationEnsemble,
    RegressionEnsemble,
)
from oobcurve.ensembles.sklearn_models import (
    SUPPORTED_ESTIMATORS,
    SklearnEnsemble,
    is_sklearn_ensemble,
    unwrap_pipeline,
)
from oobcurve.ensembles.adapter import (
    adapt_ensemble,
    tensors_from_ensemble,
    encode_labels,
    one_hot_votes,
)

__all__ = [
    # Core types
    "TaskType",
    "EnsembleTensors",
    "TrainedEnsemble",
    "ClassificationEnsemble",
    "RegressionEnsemble",
    # scikit-learn ensembles
    "SUPPORTED_ESTIMATORS",
    "SklearnEnsemble",
    "is_sklearn_ensemble",
    "unwrap_pipeline",
    # Adaptation
    "adapt_ensemble",
    "tensors_from_ensemble",
    "encode_labels",
    "one_hot_votes",
]
