import numpy as np
import pytest

from charge_level.config import LABEL_COL
from charge_level.errors import TrainingPreconditionError
from charge_level.models import (
    DecisionTreeTrainer,
    LogisticRegressionTrainer,
    NaiveBayesTrainer,
    PolynomialSVMTrainer,
    RandomForestTrainer,
    TrainedModel,
    check_training_data,
    get_trainer_candidates,
)

SMALL_TRAINERS = [
    RandomForestTrainer(n_estimators=25, random_state=0),
    PolynomialSVMTrainer(degree=(1, 2), C=(0.5, 1.0), random_state=0),
    NaiveBayesTrainer(),
    LogisticRegressionTrainer(),
    DecisionTreeTrainer(random_state=0),
]


@pytest.mark.parametrize("trainer", SMALL_TRAINERS, ids=lambda t: t.name)
def test_every_trainer_beats_chance(trainer, model_records, fast_resampling):
    model = trainer.train(model_records, LABEL_COL, fast_resampling)

    X = model_records.drop(columns=[LABEL_COL])
    accuracy = np.mean(model.predict(X) == model_records[LABEL_COL].to_numpy())

    assert isinstance(model, TrainedModel)
    assert set(model.classes_) == {"High", "Low"}
    assert accuracy > 0.5


@pytest.mark.parametrize("trainer", SMALL_TRAINERS[:4], ids=lambda t: t.name)
def test_resampled_trainers_record_cv_scores(trainer, model_records, fast_resampling):
    model = trainer.train(model_records, LABEL_COL, fast_resampling)

    assert model.cv_scores is not None
    assert len(model.cv_scores) == fast_resampling.n_splits * fast_resampling.n_repeats
    assert 0.0 <= model.cv_accuracy <= 1.0


def test_random_forest_tunes_max_features(model_records, fast_resampling):
    trainer = RandomForestTrainer(n_estimators=10, max_features=(0.5, 1.0), random_state=0)
    model = trainer.train(model_records, LABEL_COL, fast_resampling)

    assert model.best_params["max_features"] in (0.5, 1.0)
    assert model.estimator[-1].n_estimators == 10


def test_predict_proba_has_one_column_per_class(model_records, fast_resampling):
    model = NaiveBayesTrainer().train(model_records, LABEL_COL, fast_resampling)
    X = model_records.drop(columns=[LABEL_COL])

    proba = model.predict_proba(X)
    assert list(proba.columns) == ["High", "Low"]
    np.testing.assert_allclose(proba.sum(axis=1), 1.0)
    assert proba.index.equals(X.index)


def test_decision_tree_exposes_tree_text(model_records):
    model = DecisionTreeTrainer(random_state=0).train(model_records, LABEL_COL)

    assert model.cv_scores is None
    assert model.cv_accuracy is None
    assert "smoker" in model.tree_text
    assert "class: " in model.tree_text


def test_empty_training_partition_fails_fast(model_records):
    with pytest.raises(TrainingPreconditionError) as excinfo:
        NaiveBayesTrainer().train(model_records.iloc[0:0], LABEL_COL)
    assert excinfo.value.reason == TrainingPreconditionError.EMPTY


def test_single_class_fails_fast(model_records):
    high_only = model_records[model_records[LABEL_COL] == "High"]
    with pytest.raises(TrainingPreconditionError) as excinfo:
        LogisticRegressionTrainer().train(high_only, LABEL_COL)
    assert excinfo.value.reason == TrainingPreconditionError.SINGLE_CLASS


def test_missing_values_fail_fast(model_records):
    records = model_records.copy()
    records["bmi"] = records["bmi"].astype(float)
    records.iloc[3, records.columns.get_loc("bmi")] = np.nan

    with pytest.raises(TrainingPreconditionError) as excinfo:
        DecisionTreeTrainer().train(records, LABEL_COL)
    assert excinfo.value.reason == TrainingPreconditionError.MISSING_VALUES
    assert "bmi" in str(excinfo.value)


def test_unknown_label_column_is_rejected(model_records):
    with pytest.raises(ValueError):
        check_training_data(model_records, "not_a_column")


def test_trainer_registry():
    trainers = get_trainer_candidates(n_estimators=50, random_state=1)

    assert set(trainers) == {
        "random_forest",
        "svm_poly",
        "naive_bayes",
        "logistic_regression",
        "decision_tree",
    }
    assert trainers["random_forest"].n_estimators == 50
    assert all(callable(getattr(t, "train")) for t in trainers.values())
