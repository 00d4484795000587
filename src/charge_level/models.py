from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import GridSearchCV, cross_validate
from sklearn.naive_bayes import GaussianNB
from sklearn.pipeline import Pipeline
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier, export_text

from .config import RANDOM_STATE, ResamplingConfig
from .errors import TrainingPreconditionError
from .preprocessing import build_model_pipeline, transformed_feature_names

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    """Anything that maps a frame of encoded records to charge-level labels."""

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        ...


class Trainer(Protocol):
    """Common training contract shared by every algorithm family."""

    name: str

    def train(
        self,
        training_records: pd.DataFrame,
        label_column: str,
        resampling: Optional[ResamplingConfig] = None,
    ) -> Classifier:
        ...


# --------------------------------------------------------------------
# Preconditions
# --------------------------------------------------------------------
def check_training_data(df: pd.DataFrame, label_column: str) -> None:
    """
    Fail fast before fitting: the partition must be non-empty, free of
    missing values and contain at least two classes.
    """
    if label_column not in df.columns:
        raise ValueError(f"Label column '{label_column}' not found")

    if len(df) == 0:
        raise TrainingPreconditionError(
            TrainingPreconditionError.EMPTY, "training partition has no records"
        )
    if len(df.columns) < 2:
        raise TrainingPreconditionError(
            TrainingPreconditionError.EMPTY, "training partition has no feature columns"
        )

    missing = df.columns[df.isna().any()].tolist()
    if missing:
        logger.error("Missing values in training columns: %s", missing)
        raise TrainingPreconditionError(
            TrainingPreconditionError.MISSING_VALUES,
            f"missing values in columns {missing}",
        )

    classes = pd.unique(df[label_column])
    if len(classes) < 2:
        raise TrainingPreconditionError(
            TrainingPreconditionError.SINGLE_CLASS,
            f"only class {classes[0]!r} present in '{label_column}'",
        )


def split_features(df: pd.DataFrame, label_column: str) -> Tuple[pd.DataFrame, pd.Series]:
    check_training_data(df, label_column)
    X = df.drop(columns=[label_column])
    y = df[label_column]
    return X, y


# --------------------------------------------------------------------
# Trained model
# --------------------------------------------------------------------
@dataclass
class TrainedModel:
    name: str
    estimator: Pipeline
    best_params: Dict[str, Any] = field(default_factory=dict)
    cv_scores: Optional[np.ndarray] = None
    train_time: float = 0.0
    tree_text: Optional[str] = None

    @property
    def classes_(self) -> list:
        return list(self.estimator.classes_)

    @property
    def cv_accuracy(self) -> Optional[float]:
        if self.cv_scores is None or len(self.cv_scores) == 0:
            return None
        return float(np.mean(self.cv_scores))

    @property
    def cv_std(self) -> Optional[float]:
        if self.cv_scores is None or len(self.cv_scores) == 0:
            return None
        return float(np.std(self.cv_scores))

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return self.estimator.predict(X)

    def predict_proba(self, X: pd.DataFrame) -> pd.DataFrame:
        proba = self.estimator.predict_proba(X)
        return pd.DataFrame(proba, columns=self.classes_, index=X.index)


def _fit_with_resampling(
    name: str,
    model: BaseEstimator,
    param_grid: Dict[str, Sequence[Any]],
    X: pd.DataFrame,
    y: pd.Series,
    resampling: ResamplingConfig,
    scale_numeric: bool = True,
) -> TrainedModel:
    """
    Tune `param_grid` (if any) with repeated k-fold CV, then refit on all of X.
    """
    logger.info(
        "Training %s with %d-fold CV repeated %d times",
        name,
        resampling.n_splits,
        resampling.n_repeats,
    )
    pipeline = build_model_pipeline(model, scale_numeric=scale_numeric)
    start = time.time()

    if param_grid:
        search = GridSearchCV(
            pipeline,
            param_grid={f"model__{key}": list(values) for key, values in param_grid.items()},
            scoring=resampling.scoring,
            cv=resampling.splitter(),
            n_jobs=resampling.n_jobs,
            refit=True,
        )
        search.fit(X, y)
        estimator = search.best_estimator_
        best_params = {
            key.replace("model__", "", 1): value for key, value in search.best_params_.items()
        }
        idx = search.best_index_
        cv_scores = np.array(
            [search.cv_results_[f"split{i}_test_score"][idx] for i in range(search.n_splits_)]
        )
    else:
        results = cross_validate(
            pipeline,
            X,
            y,
            scoring=resampling.scoring,
            cv=resampling.splitter(),
            n_jobs=resampling.n_jobs,
        )
        cv_scores = np.asarray(results["test_score"])
        estimator = pipeline.fit(X, y)
        best_params = {}

    train_time = time.time() - start
    trained = TrainedModel(
        name=name,
        estimator=estimator,
        best_params=best_params,
        cv_scores=cv_scores,
        train_time=train_time,
    )
    logger.info(
        "%s: CV accuracy %.4f +/- %.4f, params %s (%.1fs)",
        name,
        trained.cv_accuracy,
        trained.cv_std,
        best_params,
        train_time,
    )
    return trained


# --------------------------------------------------------------------
# Trainers
# --------------------------------------------------------------------
@dataclass
class RandomForestTrainer:
    n_estimators: int = 500
    max_features: Sequence[float] = (0.25, 0.5, 1.0)
    random_state: int = RANDOM_STATE
    name: str = "Random Forest"

    def train(self, training_records, label_column, resampling=None) -> TrainedModel:
        X, y = split_features(training_records, label_column)
        model = RandomForestClassifier(
            n_estimators=self.n_estimators,
            random_state=self.random_state,
        )
        return _fit_with_resampling(
            self.name,
            model,
            {"max_features": self.max_features},
            X,
            y,
            resampling or ResamplingConfig(),
        )


@dataclass
class PolynomialSVMTrainer:
    degree: Sequence[int] = (1, 2, 3)
    C: Sequence[float] = (0.25, 0.5, 1.0)
    random_state: int = RANDOM_STATE
    name: str = "SVM (polynomial)"

    def train(self, training_records, label_column, resampling=None) -> TrainedModel:
        X, y = split_features(training_records, label_column)
        # probability=True so the stacker can read class probabilities
        model = SVC(
            kernel="poly",
            gamma="scale",
            coef0=1.0,
            probability=True,
            random_state=self.random_state,
        )
        return _fit_with_resampling(
            self.name,
            model,
            {"degree": self.degree, "C": self.C},
            X,
            y,
            resampling or ResamplingConfig(),
        )


@dataclass
class NaiveBayesTrainer:
    var_smoothing: Sequence[float] = (1e-9, 1e-6, 1e-3)
    name: str = "Naive Bayes"

    def train(self, training_records, label_column, resampling=None) -> TrainedModel:
        X, y = split_features(training_records, label_column)
        return _fit_with_resampling(
            self.name,
            GaussianNB(),
            {"var_smoothing": self.var_smoothing},
            X,
            y,
            resampling or ResamplingConfig(),
        )


@dataclass
class LogisticRegressionTrainer:
    max_iter: int = 1000
    name: str = "Logistic Regression"

    def train(self, training_records, label_column, resampling=None) -> TrainedModel:
        X, y = split_features(training_records, label_column)
        # Nothing to tune; resampling only estimates accuracy.
        return _fit_with_resampling(
            self.name,
            LogisticRegression(max_iter=self.max_iter),
            {},
            X,
            y,
            resampling or ResamplingConfig(),
        )


@dataclass
class DecisionTreeTrainer:
    min_samples_split: int = 20
    min_samples_leaf: int = 7
    max_depth: int = 30
    random_state: int = RANDOM_STATE
    name: str = "Decision Tree"

    def train(self, training_records, label_column, resampling=None) -> TrainedModel:
        """Fit a single gini tree directly; `resampling` is accepted but unused."""
        X, y = split_features(training_records, label_column)
        logger.info("Training %s without resampling", self.name)

        model = DecisionTreeClassifier(
            criterion="gini",
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            max_depth=self.max_depth,
            random_state=self.random_state,
        )
        pipeline = build_model_pipeline(model, scale_numeric=False)

        start = time.time()
        pipeline.fit(X, y)
        train_time = time.time() - start

        tree_text = export_text(pipeline[-1], feature_names=transformed_feature_names(pipeline))
        logger.info("%s: depth %d, %d leaves", self.name, model.get_depth(), model.get_n_leaves())
        return TrainedModel(
            name=self.name,
            estimator=pipeline,
            train_time=train_time,
            tree_text=tree_text,
        )


def get_trainer_candidates(
    n_estimators: int = 500, random_state: int = RANDOM_STATE
) -> Dict[str, Trainer]:
    """Registry of the base trainers, keyed by stable names."""
    return {
        "random_forest": RandomForestTrainer(n_estimators=n_estimators, random_state=random_state),
        "svm_poly": PolynomialSVMTrainer(random_state=random_state),
        "naive_bayes": NaiveBayesTrainer(),
        "logistic_regression": LogisticRegressionTrainer(),
        "decision_tree": DecisionTreeTrainer(random_state=random_state),
    }
