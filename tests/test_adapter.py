"""
Tests for ensemble adaptation: in-memory ensembles, scikit-learn models
and the error paths for unsupported input.
"""

import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import (
    BaggingClassifier,
    BaggingRegressor,
    ExtraTreesClassifier,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from oobcurve.curves.aggregation import final_oob_aggregate
from oobcurve.ensembles.adapter import (
    adapt_ensemble,
    encode_labels,
    one_hot_votes,
    tensors_from_ensemble,
)
from oobcurve.ensembles.base import (
    ClassificationEnsemble,
    EnsembleTensors,
    RegressionEnsemble,
    TaskType,
)
from oobcurve.ensembles.sklearn_models import SklearnEnsemble, is_sklearn_ensemble
from oobcurve.exceptions import (
    MissingBookkeepingError,
    UnsupportedModelError,
    UnsupportedTaskTypeError,
)


# ════════════════════════════════════════════════════════════════════════
# Helpers
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestHelpers:

    def test_one_hot_votes(self):
        votes = one_hot_votes(np.array([[0, 2], [1, 1]]), 3)

        assert votes.shape == (2, 2, 3)
        np.testing.assert_array_equal(votes[0, 1], [0.0, 0.0, 1.0])
        np.testing.assert_array_equal(votes.sum(axis=2), np.ones((2, 2)))

    def test_one_hot_votes_rejects_out_of_range_codes(self):
        with pytest.raises(ValueError, match="class codes"):
            one_hot_votes(np.array([[0, 3]]), 3)

    def test_one_hot_votes_rejects_labels(self):
        with pytest.raises(ValueError, match="integers"):
            one_hot_votes(np.array([["a", "b"]]), 2)

    def test_label_predictions_from_ensemble(self):
        ensemble = ClassificationEnsemble(
            inbag=[[0, 1]],
            predictions=[["a", "b"]],
            truth=["a"],
            class_labels=["a", "b"],
        )

        with pytest.raises(ValueError, match="integers"):
            adapt_ensemble(ensemble)

    def test_encode_labels(self):
        codes = encode_labels(["b", "a", "c", "b"], ("a", "b", "c"))
        np.testing.assert_array_equal(codes, [1, 0, 2, 1])

    def test_encode_labels_unknown_label(self):
        with pytest.raises(ValueError, match="not among the class labels"):
            encode_labels(["a", "z"], ("a", "b"))

    def test_encode_labels_duplicate_classes(self):
        with pytest.raises(ValueError, match="unique"):
            encode_labels(["a"], ("a", "a"))

    def test_task_type_aliases(self):
        assert TaskType.coerce("classification") is TaskType.CLASSIFICATION
        assert TaskType.coerce("regr") is TaskType.REGRESSION

    def test_unknown_task_type(self):
        with pytest.raises(UnsupportedTaskTypeError):
            TaskType.coerce("survival")


# ════════════════════════════════════════════════════════════════════════
# In-memory ensembles
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestArrayEnsembles:

    def test_classification_codes_become_one_hot(self):
        ensemble = ClassificationEnsemble(
            inbag=[[0, 1], [1, 0], [0, 0]],
            predictions=[[0, 1], [1, 1], [1, 0]],
            truth=["neg", "pos", "pos"],
            class_labels=["neg", "pos"],
        )

        tensors = adapt_ensemble(ensemble)

        assert tensors.task_type is TaskType.CLASSIFICATION
        assert tensors.predictions.shape == (3, 2, 2)
        assert tensors.class_labels == ("neg", "pos")
        np.testing.assert_array_equal(tensors.truth, [0, 1, 1])

    def test_class_labels_default_to_sorted_truth(self):
        ensemble = ClassificationEnsemble(
            inbag=[[0], [0]],
            predictions=[[1], [0]],
            truth=["y", "x"],
        )
        assert ensemble.class_labels() == ("x", "y")

    def test_y_overrides_reported_truth(self):
        ensemble = RegressionEnsemble(
            inbag=[[0, 1]], predictions=[[1.0, 2.0]], truth=[5.0]
        )

        tensors = adapt_ensemble(ensemble, y=[7.0])

        np.testing.assert_array_equal(tensors.truth, [7.0])

    def test_missing_truth(self):
        ensemble = RegressionEnsemble(inbag=[[0, 1]], predictions=[[1.0, 2.0]])

        with pytest.raises(ValueError, match="targets"):
            adapt_ensemble(ensemble)

    def test_missing_inbag(self):
        ensemble = RegressionEnsemble(inbag=None, predictions=[[1.0, 2.0]], truth=[1.0])

        with pytest.raises(MissingBookkeepingError):
            adapt_ensemble(ensemble)

    def test_inbag_shape_must_match_trees(self):
        ensemble = RegressionEnsemble(
            inbag=[[0, 1, 0]], predictions=[[1.0, 2.0]], truth=[1.0]
        )

        with pytest.raises(ValueError, match="inbag matrix"):
            tensors_from_ensemble(ensemble)

    def test_tensors_pass_through(self, regression_tensors):
        assert adapt_ensemble(regression_tensors) is regression_tensors

    def test_tensors_are_read_only(self, regression_tensors):
        with pytest.raises(ValueError):
            regression_tensors.predictions[0, 0] = 1.0

    def test_tensors_compare_by_identity(self, regression_tensors):
        same_content = EnsembleTensors(
            inbag=regression_tensors.inbag,
            predictions=regression_tensors.predictions,
            truth=regression_tensors.truth,
            task_type="regr",
        )

        assert regression_tensors == regression_tensors
        assert regression_tensors != same_content
        assert len({regression_tensors, same_content}) == 2

    def test_negative_inbag_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            EnsembleTensors(
                inbag=[[-1]], predictions=[[1.0]], truth=[1.0], task_type="regr"
            )

    def test_class_code_out_of_range(self):
        with pytest.raises(ValueError, match="class codes"):
            EnsembleTensors(
                inbag=[[0]],
                predictions=[[[1.0, 0.0]]],
                truth=[2],
                task_type="classif",
                class_labels=(0, 1),
            )

    def test_duck_typed_ensemble(self):
        class External:
            def number_of_trees(self):
                return 2

            def task_type(self):
                return "regression"

            def class_labels(self):
                return None

            def inbag_matrix(self):
                return np.array([[0, 0]])

            def raw_predictions(self, all_trees=True):
                return np.array([[1.0, 3.0]])

        tensors = adapt_ensemble(External(), y=[2.0])

        assert tensors.n_trees == 2
        assert tensors.task_type is TaskType.REGRESSION

    def test_unsupported_model(self):
        with pytest.raises(UnsupportedModelError):
            adapt_ensemble(object())


# ════════════════════════════════════════════════════════════════════════
# scikit-learn models
# ════════════════════════════════════════════════════════════════════════


@pytest.mark.integration
class TestSklearnEnsembles:

    def test_random_forest_classifier(self, fitted_classifier, classification_data):
        X, y = classification_data

        tensors = adapt_ensemble(fitted_classifier, X, y)

        assert tensors.n_samples == X.shape[0]
        assert tensors.n_trees == 30
        assert tensors.class_labels == tuple(fitted_classifier.classes_)
        assert tensors.predictions.shape == (X.shape[0], 30, 2)

    def test_inbag_counts_sum_to_bootstrap_size(self, fitted_classifier, classification_data):
        X, y = classification_data

        tensors = adapt_ensemble(fitted_classifier, X, y)

        np.testing.assert_array_equal(tensors.inbag.sum(axis=0), np.full(30, X.shape[0]))

    def test_regression_oob_matches_sklearn(self, fitted_regressor, regression_data):
        X, y = regression_data

        tensors = adapt_ensemble(fitted_regressor, X, y)

        np.testing.assert_allclose(
            final_oob_aggregate(tensors), fitted_regressor.oob_prediction_, rtol=1e-6
        )

    def test_classification_oob_matches_sklearn(self, fitted_classifier, classification_data):
        # Fully grown trees have pure leaves, so per-tree probabilities
        # equal one-hot votes
        X, y = classification_data

        tensors = adapt_ensemble(fitted_classifier, X, y)

        np.testing.assert_allclose(
            final_oob_aggregate(tensors), fitted_classifier.oob_decision_function_, rtol=1e-6
        )

    def test_dataframe_input(self, fitted_regressor, regression_data):
        X, y = regression_data

        tensors = adapt_ensemble(fitted_regressor, pd.DataFrame(X), pd.Series(y))

        assert tensors.n_samples == X.shape[0]

    def test_string_labels_with_bagging(self, classification_data):
        X, y = classification_data
        labels = np.where(y == 1, "yes", "no")
        model = BaggingClassifier(
            estimator=DecisionTreeClassifier(),
            n_estimators=10,
            max_features=0.5,
            random_state=0,
        ).fit(X, labels)

        tensors = adapt_ensemble(model, X, labels)

        assert tensors.class_labels == ("no", "yes")
        np.testing.assert_array_equal(tensors.truth, (labels == "yes").astype(int))
        assert tensors.n_trees == 10

    def test_bagging_regressor(self, regression_data):
        X, y = regression_data
        model = BaggingRegressor(
            estimator=DecisionTreeRegressor(), n_estimators=8, random_state=0
        ).fit(X, y)

        tensors = adapt_ensemble(model, X, y)

        assert tensors.task_type is TaskType.REGRESSION
        assert tensors.predictions.shape == (X.shape[0], 8)

    def test_pipeline(self, classification_data):
        X, y = classification_data
        pipeline = Pipeline([
            ("scale", StandardScaler()),
            ("rf", RandomForestClassifier(n_estimators=10, random_state=0)),
        ]).fit(X, y)

        assert is_sklearn_ensemble(pipeline)
        assert adapt_ensemble(pipeline, X, y).n_trees == 10

    def test_x_and_y_required(self, fitted_classifier):
        with pytest.raises(ValueError, match="training data"):
            adapt_ensemble(fitted_classifier)

    def test_without_bootstrap(self, classification_data):
        X, y = classification_data
        model = ExtraTreesClassifier(n_estimators=5, random_state=0).fit(X, y)

        with pytest.raises(MissingBookkeepingError, match="bootstrap"):
            adapt_ensemble(model, X, y)

    def test_unfitted_model(self, classification_data):
        X, y = classification_data

        with pytest.raises(UnsupportedModelError, match="fitted"):
            adapt_ensemble(RandomForestRegressor(), X, y)

    def test_non_ensemble_estimator(self, classification_data):
        X, y = classification_data
        model = LogisticRegression().fit(X, y)

        assert not is_sklearn_ensemble(model)
        with pytest.raises(UnsupportedModelError):
            adapt_ensemble(model, X, y)

    def test_wrong_training_rows(self, fitted_classifier, classification_data):
        X, y = classification_data

        with pytest.raises(ValueError, match="rows"):
            SklearnEnsemble(fitted_classifier, X[:50], y[:50]).inbag_matrix()

    def test_extra_training_rows(self, fitted_regressor, regression_data):
        X, y = regression_data
        padded_X = np.vstack([X, X[:30]])
        padded_y = np.concatenate([y, y[:30]])

        with pytest.raises(ValueError, match="trained on 150 samples"):
            adapt_ensemble(fitted_regressor, padded_X, padded_y)
