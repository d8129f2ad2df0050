"""
Visualization utilities for OOB curves and hyperparameter sweeps.

This module provides plotting functions for the tables returned by
``compute_oob_curve`` and ``sweep_hyperparameter``.
"""

from typing import Optional, Sequence, Tuple
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt


def _select_columns(table: pd.DataFrame, measures: Optional[Sequence[str]]) -> list:
    if measures is None:
        return list(table.columns)
    missing = [m for m in measures if m not in table.columns]
    if missing:
        raise ValueError(f"measures {missing} not found, available: {list(table.columns)}")
    return list(measures)


def plot_oob_curve(
    curve: pd.DataFrame,
    measures: Optional[Sequence[str]] = None,
    title: Optional[str] = None,
    figsize: Tuple[int, int] = (10, 4),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """
    Plot OOB performance against the number of trees.

    One panel is drawn per measure, side by side.

    Parameters
    ----------
    curve : pd.DataFrame
        Result of ``compute_oob_curve``.
    measures : sequence of str, optional
        Columns to plot. If None, plots all of them.
    title : str, optional
        Figure title.
    figsize : tuple, default=(10, 4)
        Figure size (width, height).
    save_path : str, optional
        Path to save the figure.

    Returns
    -------
    fig : matplotlib.Figure
        The generated figure.

    Examples
    --------
    >>> curve = compute_oob_curve(clf, measures=["mmce", "auc"], X=X, y=y)
    >>> fig = plot_oob_curve(curve)
    >>> plt.show()
    """
    columns = _select_columns(curve, measures)

    fig, axes = plt.subplots(1, len(columns), figsize=figsize, squeeze=False)

    for ax, column in zip(axes[0], columns):
        ax.plot(curve.index, curve[column], color='steelblue', linewidth=1.5)
        ax.set_xlabel('Number of trees', fontsize=12)
        ax.set_ylabel(f'OOB {column}', fontsize=12)
        ax.grid(True, alpha=0.3)

        # Mark where the curve first becomes defined
        defined = np.flatnonzero(curve[column].notna().values)
        if defined.size and defined[0] > 0:
            ax.axvline(
                x=curve.index[defined[0]],
                color='red',
                linestyle='dotted',
                linewidth=1.0,
                label='first defined step',
            )
            ax.legend(loc='best')

    if title is not None:
        fig.suptitle(title, fontsize=14)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=100, bbox_inches='tight')

    return fig


def plot_sweep(
    result: pd.DataFrame,
    measures: Optional[Sequence[str]] = None,
    title: Optional[str] = None,
    figsize: Tuple[int, int] = (10, 4),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """
    Plot OOB performance against a swept hyperparameter.

    Parameters
    ----------
    result : pd.DataFrame
        Result of ``sweep_hyperparameter`` (index = hyperparameter values).
    measures : sequence of str, optional
        Columns to plot. If None, plots all of them.
    title : str, optional
        Figure title.
    figsize : tuple, default=(10, 4)
        Figure size.
    save_path : str, optional
        Path to save the figure.

    Returns
    -------
    fig : matplotlib.Figure
        The generated figure.
    """
    columns = _select_columns(result, measures)
    parameter = result.index.name or 'value'

    fig, axes = plt.subplots(1, len(columns), figsize=figsize, squeeze=False)

    for ax, column in zip(axes[0], columns):
        ax.plot(
            result.index,
            result[column],
            color='steelblue',
            marker='o',
            linewidth=1.5,
        )
        ax.set_xlabel(parameter, fontsize=12)
        ax.set_ylabel(f'OOB {column}', fontsize=12)
        ax.grid(True, alpha=0.3)

    if title is not None:
        fig.suptitle(title, fontsize=14)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=100, bbox_inches='tight')

    return fig
