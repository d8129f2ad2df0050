"""
Out-of-bag curves for bagged-tree ensembles.

This module computes how the OOB performance of an ensemble evolves as
trees are added, using only the training data.

Key Concepts:
- **Cumulative OOB aggregate**: for the first s trees, the per-sample mean
  of the predictions of the trees for which the sample was OOB
- **Undefined steps**: a sample with no OOB tree yet has a NaN aggregate,
  and built-in measures report NaN for such steps
- **Measures**: functions ``(predictions, truth, task_type) -> float``
  looked up by id in a MeasureRegistry

Classification aggregates are vote shares per class (rows sum to 1);
regression aggregates are OOB means of the tree predictions.
"""

from oobcurve.curves.aggregation import (
    oob_mask,
    cumulative_oob_counts,
    oob_coverage,
    never_oob_samples,
    cumulative_oob_aggregate,
    iter_oob_aggregates,
    final_oob_aggregate,
)
from oobcurve.curves.measures import (
    Measure,
    BUILTIN_MEASURES,
    MeasureRegistry,
    default_registry,
    measure_from_callable,
    response_from_probabilities,
    evaluate_measures,
)
from oobcurve.curves.curve import (
    DEFAULT_CLASSIF_MEASURES,
    DEFAULT_REGR_MEASURES,
    default_measures,
    compute_oob_curve,
    compute_oob_performance,
)
from oobcurve.curves.plotting import (
    plot_oob_curve,
    plot_sweep,
)

__all__ = [
    # Aggregation
    "oob_mask",
    "cumulative_oob_counts",
    "oob_coverage",
    "never_oob_samples",
    "cumulative_oob_aggregate",
    "iter_oob_aggregates",
    "final_oob_aggregate",
    # Measures
    "Measure",
    "BUILTIN_MEASURES",
    "MeasureRegistry",
    "default_registry",
    "measure_from_callable",
    "response_from_probabilities",
    "evaluate_measures",
    # Curves
    "DEFAULT_CLASSIF_MEASURES",
    "DEFAULT_REGR_MEASURES",
    "default_measures",
    "compute_oob_curve",
    "compute_oob_performance",
    # Plotting
    "plot_oob_curve",
    "plot_sweep",
]
