"""
Hyperparameter sweeps scored by out-of-bag performance.

Each grid value of one hyperparameter is used to retrain the ensemble, and
the OOB performance of the retrained ensemble is recorded. Grid points run
sequentially or in a process/thread pool; results keep grid order.

Sweepable hyperparameters:
- **feature_subset_size**: candidate features per split (max_features)
- **subsample_fraction**: share of samples drawn per tree (max_samples)
- **min_leaf_size**: minimum samples per leaf (min_samples_leaf)
"""

from oobcurve.sweep.grid import (
    DEFAULT_GRID_SIZE,
    Hyperparameter,
    HYPERPARAMETERS,
    get_hyperparameter,
    make_grid,
)
from oobcurve.sweep.trainer import (
    ForestTrainer,
    create_oob_forest_classifier,
    create_oob_forest_regressor,
    create_oob_bagging_classifier,
    create_oob_bagging_regressor,
)
from oobcurve.sweep.driver import (
    evaluate_grid_point,
    sweep_hyperparameter,
)

__all__ = [
    # Grids
    "DEFAULT_GRID_SIZE",
    "Hyperparameter",
    "HYPERPARAMETERS",
    "get_hyperparameter",
    "make_grid",
    # Training
    "ForestTrainer",
    "create_oob_forest_classifier",
    "create_oob_forest_regressor",
    "create_oob_bagging_classifier",
    "create_oob_bagging_regressor",
    # Sweeps
    "evaluate_grid_point",
    "sweep_hyperparameter",
]
