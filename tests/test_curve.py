"""
Tests for OOB curve computation and plotting.
"""

import logging

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import ExtraTreesRegressor, RandomForestClassifier

from oobcurve.curves.curve import (
    compute_oob_curve,
    compute_oob_performance,
    default_measures,
)
from oobcurve.curves.measures import default_registry, measure_from_callable
from oobcurve.curves.plotting import plot_oob_curve, plot_sweep
from oobcurve.ensembles.base import EnsembleTensors
from oobcurve.exceptions import (
    MeasureEvaluationError,
    MissingBookkeepingError,
    UnsupportedModelError,
)


# ════════════════════════════════════════════════════════════════════════
# Hand-built ensembles
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestCurveShape:

    def test_one_row_per_tree(self, regression_tensors):
        curve = compute_oob_curve(regression_tensors, measures=["mse", "mae"])

        assert isinstance(curve, pd.DataFrame)
        assert list(curve.index) == [1, 2]
        assert curve.index.name == "num_trees"
        assert list(curve.columns) == ["mse", "mae"]

    def test_undefined_step_is_nan(self, regression_tensors):
        curve = compute_oob_curve(regression_tensors, measures="mse")

        assert np.isnan(curve.loc[1, "mse"])
        # Aggregates after two trees are [10, 40, 55] against [10, 40, 50]
        assert curve.loc[2, "mse"] == pytest.approx(25.0 / 3.0)

    def test_custom_measure_receives_raw_nan(self, regression_tensors):
        counter = measure_from_callable(
            "n_undefined", lambda p, t, task: np.isnan(p).sum(), ["regr"]
        )

        curve = compute_oob_curve(regression_tensors, measures=[counter])

        assert curve["n_undefined"].tolist() == [1.0, 0.0]

    def test_default_measures(self, regression_tensors, random_classification_tensors):
        assert default_measures("regr") == ("mse",)
        assert default_measures("classif") == ("auc",)
        assert list(compute_oob_curve(regression_tensors).columns) == ["mse"]
        assert list(compute_oob_curve(random_classification_tensors).columns) == ["auc"]

    def test_performance_equals_last_row(self, random_classification_tensors):
        measures = ["mmce", "brier"]

        curve = compute_oob_curve(random_classification_tensors, measures)
        performance = compute_oob_performance(random_classification_tensors, measures)

        assert list(performance) == measures
        for measure in measures:
            np.testing.assert_equal(performance[measure], curve[measure].iloc[-1])

    def test_duplicate_measures(self, regression_tensors):
        with pytest.raises(ValueError, match="unique"):
            compute_oob_curve(regression_tensors, measures=["mse", "mse"])

    def test_empty_measures(self, regression_tensors):
        with pytest.raises(ValueError, match="at least one"):
            compute_oob_curve(regression_tensors, measures=[])

    def test_measure_for_other_task(self, regression_tensors):
        with pytest.raises(MeasureEvaluationError):
            compute_oob_curve(regression_tensors, measures="auc")

    def test_custom_registry(self, regression_tensors):
        registry = default_registry()
        registry.register(
            measure_from_callable("maxerr", lambda p, t, task: np.nanmax(np.abs(p - t)), ["regr"])
        )

        curve = compute_oob_curve(regression_tensors, measures="maxerr", registry=registry)

        assert curve["maxerr"].tolist() == [0.0, 5.0]

    def test_warns_about_never_oob_samples(self, caplog):
        tensors = EnsembleTensors(
            inbag=np.array([[0, 1], [1, 1]]),
            predictions=np.array([[1.0, 1.0], [2.0, 2.0]]),
            truth=np.array([1.0, 2.0]),
            task_type="regr",
        )

        with caplog.at_level(logging.WARNING, logger="oobcurve.curves.curve"):
            curve = compute_oob_curve(tensors, measures="mse")

        assert "in-bag for all 2 trees" in caplog.text
        assert curve["mse"].isna().all()

    def test_unsupported_model(self):
        with pytest.raises(UnsupportedModelError):
            compute_oob_curve([[0, 1]], measures="mse")


# ════════════════════════════════════════════════════════════════════════
# scikit-learn forests
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.integration
class TestForestCurves:

    def test_curve_length(self, fitted_classifier, classification_data):
        X, y = classification_data

        curve = compute_oob_curve(fitted_classifier, ["mmce", "auc", "brier"], X=X, y=y)

        assert len(curve) == 30
        assert list(curve.columns) == ["mmce", "auc", "brier"]

    def test_idempotent(self, fitted_classifier, classification_data):
        X, y = classification_data

        first = compute_oob_curve(fitted_classifier, ["mmce", "auc"], X=X, y=y)
        second = compute_oob_curve(fitted_classifier, ["mmce", "auc"], X=X, y=y)

        pd.testing.assert_frame_equal(first, second)

    def test_first_steps_undefined_last_defined(self, fitted_regressor, regression_data):
        X, y = regression_data

        curve = compute_oob_curve(fitted_regressor, "mse", X=X, y=y)

        assert np.isnan(curve["mse"].iloc[0])
        assert not np.isnan(curve["mse"].iloc[-1])

    def test_error_decreases_on_separable_data(self, separable_data):
        X, y = separable_data
        model = RandomForestClassifier(n_estimators=60, random_state=0).fit(X, y)

        mmce = compute_oob_curve(model, "mmce", X=X, y=y)["mmce"].dropna()

        assert len(mmce) > 10
        assert mmce.iloc[-10:].mean() <= mmce.iloc[:5].mean()
        assert mmce.iloc[-1] == 0.0

    def test_final_regression_error_matches_sklearn(self, fitted_regressor, regression_data):
        X, y = regression_data

        performance = compute_oob_performance(fitted_regressor, ["mse"], X=X, y=y)

        expected = np.mean((fitted_regressor.oob_prediction_ - y) ** 2)
        assert performance["mse"] == pytest.approx(expected, rel=1e-6)

    def test_without_bootstrap(self, regression_data):
        X, y = regression_data
        model = ExtraTreesRegressor(n_estimators=5, random_state=0).fit(X, y)

        with pytest.raises(MissingBookkeepingError):
            compute_oob_curve(model, "mse", X=X, y=y)


# ════════════════════════════════════════════════════════════════════════
# Plotting
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestPlotting:

    def test_plot_oob_curve(self, random_classification_tensors, tmp_path):
        curve = compute_oob_curve(random_classification_tensors, ["mmce", "brier"])
        path = tmp_path / "curve.png"

        fig = plot_oob_curve(curve, title="OOB curve", save_path=str(path))

        assert len(fig.axes) == 2
        assert path.exists()
        plt.close(fig)

    def test_plot_selected_measure(self, random_classification_tensors):
        curve = compute_oob_curve(random_classification_tensors, ["mmce", "brier"])

        fig = plot_oob_curve(curve, measures=["brier"])

        assert len(fig.axes) == 1
        plt.close(fig)

    def test_plot_unknown_measure(self, regression_tensors):
        curve = compute_oob_curve(regression_tensors, "mse")

        with pytest.raises(ValueError, match="not found"):
            plot_oob_curve(curve, measures=["auc"])

    def test_plot_sweep(self):
        result = pd.DataFrame(
            {"mse": [3.0, 2.0, 2.5]},
            index=pd.Index([1, 3, 5], name="feature_subset_size"),
        )

        fig = plot_sweep(result)

        assert fig.axes[0].get_xlabel() == "feature_subset_size"
        plt.close(fig)
