"""
Out-of-bag learning curves for bagged-tree ensembles.

Computes, from a single trained random forest or bagging ensemble, how
its out-of-bag performance evolves with the number of trees, and sweeps
ensemble hyperparameters scored by OOB performance.

Submodules:
- ``oobcurve.ensembles``: adapters from trained ensembles to OOB tensors
- ``oobcurve.curves``: OOB aggregation, measures, curves and plots
- ``oobcurve.sweep``: hyperparameter grids, trainers and sweeps
"""

from oobcurve.exceptions import (
    OOBCurveError,
    UnsupportedModelError,
    MissingBookkeepingError,
    UnsupportedTaskTypeError,
    MeasureEvaluationError,
    TrainingError,
    SweepCancelledError,
)
from oobcurve.ensembles import (
    TaskType,
    EnsembleTensors,
    TrainedEnsemble,
    ClassificationEnsemble,
    RegressionEnsemble,
    adapt_ensemble,
)
from oobcurve.curves import (
    Measure,
    MeasureRegistry,
    default_registry,
    measure_from_callable,
    compute_oob_curve,
    compute_oob_performance,
    plot_oob_curve,
    plot_sweep,
)
from oobcurve.sweep import (
    ForestTrainer,
    make_grid,
    sweep_hyperparameter,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "OOBCurveError",
    "UnsupportedModelError",
    "MissingBookkeepingError",
    "UnsupportedTaskTypeError",
    "MeasureEvaluationError",
    "TrainingError",
    "SweepCancelledError",
    # Ensembles
    "TaskType",
    "EnsembleTensors",
    "TrainedEnsemble",
    "ClassificationEnsemble",
    "RegressionEnsemble",
    "adapt_ensemble",
    # Curves
    "Measure",
    "MeasureRegistry",
    "default_registry",
    "measure_from_callable",
    "compute_oob_curve",
    "compute_oob_performance",
    "plot_oob_curve",
    "plot_sweep",
    # Sweeps
    "ForestTrainer",
    "make_grid",
    "sweep_hyperparameter",
]
