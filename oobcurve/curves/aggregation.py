"""
Cumulative out-of-bag aggregation.

For every prefix of trees 1..s the OOB prediction of a sample averages
only the trees for which that sample was out-of-bag:

    agg[n, s, k] = sum_{t <= s, inbag[n, t] == 0} pred[n, t, k]
                   / #{t <= s : inbag[n, t] == 0}

For classification this is the running OOB vote share of each class, for
regression the running OOB mean response. A sample that has not been OOB
for any of the first s trees has no estimate: its aggregate is NaN and is
passed on as such, without imputation.

Two equivalent implementations are provided. ``cumulative_oob_aggregate``
materializes the whole (n_samples, n_trees[, n_classes]) array with
row-wise cumulative sums; ``iter_oob_aggregates`` streams one step at a
time and keeps only running numerators and denominators. Both perform the
additions in the same order and produce bit-identical values.
"""

from collections import deque
from typing import Iterator, Tuple
import numpy as np

from oobcurve.ensembles.base import EnsembleTensors


def oob_mask(inbag: np.ndarray) -> np.ndarray:
    """
    Boolean mask of out-of-bag entries.

    Parameters
    ----------
    inbag : np.ndarray of shape (n_samples, n_trees)
        In-bag counts.

    Returns
    -------
    np.ndarray of bool, same shape
        True where the sample was out-of-bag for the tree.
    """
    return np.asarray(inbag) == 0


def cumulative_oob_counts(inbag: np.ndarray) -> np.ndarray:
    """
    Number of OOB trees among the first s trees, for every sample and s.

    Parameters
    ----------
    inbag : np.ndarray of shape (n_samples, n_trees)
        In-bag counts.

    Returns
    -------
    np.ndarray of shape (n_samples, n_trees)
        Column s-1 holds the OOB tree count of each sample after s trees.
        Rows are non-decreasing.

    Examples
    --------
    >>> cumulative_oob_counts(np.array([[0, 1, 0], [2, 0, 0]]))
    array([[1., 1., 2.],
           [0., 1., 2.]])
    """
    return np.cumsum(oob_mask(inbag), axis=1, dtype=float)


def oob_coverage(inbag: np.ndarray) -> np.ndarray:
    """
    Fraction of samples with a defined OOB estimate after each step.

    Parameters
    ----------
    inbag : np.ndarray of shape (n_samples, n_trees)
        In-bag counts.

    Returns
    -------
    np.ndarray of shape (n_trees,)
        Share of samples that were OOB for at least one of the first s
        trees.
    """
    counts = cumulative_oob_counts(inbag)
    if counts.shape[0] == 0:
        return np.zeros(counts.shape[1])
    return np.mean(counts > 0, axis=0)


def never_oob_samples(inbag: np.ndarray) -> np.ndarray:
    """
    Indices of samples that are in-bag for every tree.

    Their aggregate stays NaN for the whole curve.
    """
    return np.flatnonzero(~np.any(oob_mask(inbag), axis=1))


def _divide(oob_sum: np.ndarray, oob_count: np.ndarray) -> np.ndarray:
    if oob_sum.ndim > oob_count.ndim:
        oob_count = oob_count[..., np.newaxis]
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(oob_count > 0, oob_sum / oob_count, np.nan)


def _masked_predictions(tensors: EnsembleTensors) -> Tuple[np.ndarray, np.ndarray]:
    mask = oob_mask(tensors.inbag)
    if tensors.is_classification:
        masked = np.where(mask[:, :, np.newaxis], tensors.predictions, 0.0)
    else:
        masked = np.where(mask, tensors.predictions, 0.0)
    return mask, masked


def cumulative_oob_aggregate(tensors: EnsembleTensors) -> np.ndarray:
    """
    OOB aggregated predictions for every number of trees.

    Parameters
    ----------
    tensors : EnsembleTensors
        Canonical ensemble tensors.

    Returns
    -------
    np.ndarray
        Shape (n_samples, n_trees) for regression, (n_samples, n_trees,
        n_classes) for classification. Entry [:, s-1] is the aggregate
        over the first s trees; NaN where a sample had no OOB tree yet.

    Examples
    --------
    >>> tensors = EnsembleTensors(
    ...     inbag=[[0, 1], [1, 0], [0, 0]],
    ...     predictions=[[10, 20], [30, 40], [50, 60]],
    ...     truth=[0, 0, 0],
    ...     task_type="regr",
    ... )
    >>> cumulative_oob_aggregate(tensors)
    array([[10., 10.],
           [nan, 40.],
           [50., 55.]])
    """
    mask, masked = _masked_predictions(tensors)
    oob_sum = np.cumsum(masked, axis=1)
    oob_count = np.cumsum(mask, axis=1, dtype=float)
    return _divide(oob_sum, oob_count)


def _running_totals(tensors: EnsembleTensors) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
    mask, masked = _masked_predictions(tensors)
    oob_sum = np.zeros((tensors.n_samples,) + masked.shape[2:])
    oob_count = np.zeros(tensors.n_samples)

    for tree in range(tensors.n_trees):
        oob_sum = oob_sum + masked[:, tree]
        oob_count = oob_count + mask[:, tree]
        yield oob_sum, oob_count


def iter_oob_aggregates(tensors: EnsembleTensors) -> Iterator[Tuple[int, np.ndarray]]:
    """
    Stream the OOB aggregate one tree-count step at a time.

    Parameters
    ----------
    tensors : EnsembleTensors
        Canonical ensemble tensors.

    Yields
    ------
    tuple of (int, np.ndarray)
        The step s (1-based number of trees) and the aggregate over the
        first s trees, of shape (n_samples,) or (n_samples, n_classes).

    Notes
    -----
    Only the running numerator (n_samples[, n_classes]) and denominator
    (n_samples) are kept between steps, so the full cumulative tensor is
    never materialized.
    """
    for step, (oob_sum, oob_count) in enumerate(_running_totals(tensors), start=1):
        yield step, _divide(oob_sum, oob_count)


def final_oob_aggregate(tensors: EnsembleTensors) -> np.ndarray:
    """
    OOB aggregate of the full ensemble (all trees).

    Returns
    -------
    np.ndarray of shape (n_samples,) or (n_samples, n_classes)
        Identical to the last step of ``cumulative_oob_aggregate``.
    """
    oob_sum, oob_count = deque(_running_totals(tensors), maxlen=1)[0]
    return _divide(oob_sum, oob_count)
