"""
Hyperparameters that can be swept and the grids they are swept over.

Three hyperparameters of bagged-tree ensembles are recognized. Each has a
natural range that depends on the training data:

- ``feature_subset_size``: candidate features per split, 1..n_features
- ``subsample_fraction``: share of samples drawn per tree, 0.1..1.0
- ``min_leaf_size``: minimum samples per leaf, 1..max(1, n_samples // 10)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import numpy as np

DEFAULT_GRID_SIZE = 10

GridValue = Union[int, float]


@dataclass(frozen=True)
class Hyperparameter:
    """
    A sweepable ensemble hyperparameter.

    Parameters
    ----------
    name : str
        Identifier used by the sweep.
    forest_param : str
        Name of the parameter on RandomForest*/ExtraTrees* estimators.
    bagging_param : str
        Name of the parameter on Bagging* estimators.
    integer : bool
        Whether values are integers.
    description : str
        Short description.
    """

    name: str
    forest_param: str
    bagging_param: str
    integer: bool
    description: str

    def natural_range(self, n_samples: int, n_features: int) -> Tuple[GridValue, GridValue]:
        """
        Lower and upper bound of sensible values for the given data size.

        Parameters
        ----------
        n_samples : int
            Number of training samples.
        n_features : int
            Number of training features.

        Returns
        -------
        tuple of (lower, upper)
        """
        if n_samples < 1 or n_features < 1:
            raise ValueError(
                f"n_samples and n_features must be >= 1, got {n_samples} and {n_features}"
            )
        if self.name == "feature_subset_size":
            return 1, n_features
        if self.name == "subsample_fraction":
            return 0.1, 1.0
        return 1, max(1, n_samples // 10)


HYPERPARAMETERS: Dict[str, Hyperparameter] = {
    hp.name: hp
    for hp in (
        Hyperparameter(
            name="feature_subset_size",
            forest_param="max_features",
            bagging_param="estimator__max_features",
            integer=True,
            description="Number of candidate features per split",
        ),
        Hyperparameter(
            name="subsample_fraction",
            forest_param="max_samples",
            bagging_param="max_samples",
            integer=False,
            description="Fraction of samples drawn for each tree",
        ),
        Hyperparameter(
            name="min_leaf_size",
            forest_param="min_samples_leaf",
            bagging_param="estimator__min_samples_leaf",
            integer=True,
            description="Minimum number of samples in a leaf",
        ),
    )
}


def get_hyperparameter(parameter: Union[str, Hyperparameter]) -> Hyperparameter:
    """
    Look up a recognized hyperparameter.

    Parameters
    ----------
    parameter : str or Hyperparameter
        Sweep name (e.g. 'feature_subset_size') or the matching forest
        parameter name (e.g. 'max_features').

    Returns
    -------
    Hyperparameter

    Raises
    ------
    ValueError
        If the name is not recognized.
    """
    if isinstance(parameter, Hyperparameter):
        return parameter
    if parameter in HYPERPARAMETERS:
        return HYPERPARAMETERS[parameter]
    for hp in HYPERPARAMETERS.values():
        if parameter == hp.forest_param:
            return hp
    raise ValueError(
        f"parameter must be one of {sorted(HYPERPARAMETERS)}, got {parameter!r}"
    )


def _validate_values(
    hp: Hyperparameter,
    values: Sequence[Any],
    lower: GridValue,
    upper: GridValue,
) -> List[GridValue]:
    grid = []
    for value in values:
        if isinstance(value, (bool, np.bool_, str)) or not np.isscalar(value):
            raise ValueError(f"{hp.name} values must be numbers, got {value!r}")
        value = float(value)
        if hp.integer:
            if not value.is_integer():
                raise ValueError(f"{hp.name} values must be integers, got {value}")
            value = int(value)
        if not lower <= value <= upper:
            raise ValueError(
                f"{hp.name} values must lie in [{lower}, {upper}], got {value}"
            )
        grid.append(value)
    return grid


def make_grid(
    parameter: Union[str, Hyperparameter],
    n_samples: int,
    n_features: int,
    grid_size: Optional[int] = None,
    values: Optional[Sequence[GridValue]] = None,
) -> List[GridValue]:
    """
    Build the ordered list of values a hyperparameter is swept over.

    Parameters
    ----------
    parameter : str or Hyperparameter
        The hyperparameter.
    n_samples : int
        Number of training samples.
    n_features : int
        Number of training features.
    grid_size : int, optional
        Number of equally spaced points over the natural range. Integer
        hyperparameters are rounded and repeated values dropped, so the
        grid may be shorter than grid_size.
    values : sequence, optional
        Explicit values, kept in the given order.

    Returns
    -------
    list
        Grid values (int for integer hyperparameters, float otherwise).

    Raises
    ------
    ValueError
        If both or neither of grid_size and values are given, grid_size
        is not positive, or a value lies outside the natural range.

    Examples
    --------
    >>> make_grid("feature_subset_size", n_samples=200, n_features=10, grid_size=4)
    [1, 4, 7, 10]
    >>> make_grid("subsample_fraction", 200, 10, values=[0.5, 0.25])
    [0.5, 0.25]
    """
    hp = get_hyperparameter(parameter)
    if (grid_size is None) == (values is None):
        raise ValueError("exactly one of grid_size and values must be given")

    lower, upper = hp.natural_range(n_samples, n_features)

    if values is not None:
        if len(values) == 0:
            raise ValueError("values must not be empty")
        return _validate_values(hp, values, lower, upper)

    if grid_size < 1:
        raise ValueError(f"grid_size must be >= 1, got {grid_size}")

    points = np.linspace(lower, upper, grid_size)
    if hp.integer:
        # Drop repeats introduced by rounding, keep ascending order
        return list(dict.fromkeys(int(v) for v in np.round(points)))
    return [float(v) for v in points]
