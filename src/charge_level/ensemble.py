from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import BaseEstimator, clone

from .config import HIGH, ResamplingConfig
from .models import (
    RandomForestTrainer,
    TrainedModel,
    Trainer,
    check_training_data,
    split_features,
)

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------
# Out-of-fold meta-features
# --------------------------------------------------------------------
def _fold_probabilities(
    estimator: BaseEstimator,
    X: pd.DataFrame,
    y: pd.Series,
    train_idx: np.ndarray,
    test_idx: np.ndarray,
    positive_label: str,
) -> Tuple[np.ndarray, np.ndarray]:
    fitted = clone(estimator).fit(X.iloc[train_idx], y.iloc[train_idx])
    column = list(fitted.classes_).index(positive_label)
    return test_idx, fitted.predict_proba(X.iloc[test_idx])[:, column]


def out_of_fold_probabilities(
    model: TrainedModel,
    X: pd.DataFrame,
    y: pd.Series,
    resampling: ResamplingConfig,
    positive_label: str = HIGH,
) -> pd.Series:
    """
    Positive-class probability for every training record, predicted by copies
    of the tuned model that never saw that record.

    Every record is held out once per repeat; the repeats are averaged.
    """
    splits = resampling.splitter().split(X, y)
    results = Parallel(n_jobs=resampling.n_jobs)(
        delayed(_fold_probabilities)(model.estimator, X, y, train_idx, test_idx, positive_label)
        for train_idx, test_idx in splits
    )

    total = np.zeros(len(X))
    counts = np.zeros(len(X))
    for test_idx, proba in results:
        total[test_idx] += proba
        counts[test_idx] += 1

    return pd.Series(total / counts, index=X.index, name=model.name)


# --------------------------------------------------------------------
# Base-model selection
# --------------------------------------------------------------------
def select_uncorrelated(
    predictions: pd.DataFrame,
    accuracies: Mapping[str, float],
    threshold: float = 0.75,
) -> List[str]:
    """
    Drop redundant base models.

    Pairs are visited from the most to the least correlated. When the Pearson
    correlation of a pair exceeds `threshold` and neither member was dropped
    yet, the member with the lower accuracy is dropped (the later column on a
    tie). Returns the retained column names in their original order.
    """
    names = list(predictions.columns)
    unknown = set(names) - set(accuracies)
    if unknown:
        raise ValueError(f"No accuracy given for candidates {sorted(unknown)}")

    corr = predictions.corr()
    pairs = []
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            value = corr.loc[first, second]
            if pd.notna(value) and value > threshold:
                pairs.append((value, first, second))
    pairs.sort(key=lambda pair: pair[0], reverse=True)

    kept = set(names)
    for value, first, second in pairs:
        if first not in kept or second not in kept:
            continue
        loser = second if accuracies[first] >= accuracies[second] else first
        winner = first if loser == second else second
        kept.discard(loser)
        logger.info(
            "Dropping %s: correlation %.3f with %s (accuracy %.4f < %.4f)",
            loser,
            value,
            winner,
            accuracies[loser],
            accuracies[winner],
        )

    return [name for name in names if name in kept]


# --------------------------------------------------------------------
# Stacked ensemble
# --------------------------------------------------------------------
@dataclass
class StackedModel:
    name: str
    base_models: Dict[str, TrainedModel]
    meta_model: TrainedModel
    retained: List[str]
    correlations: pd.DataFrame
    positive_label: str = HIGH

    @property
    def dropped(self) -> List[str]:
        return [name for name in self.base_models if name not in self.retained]

    @property
    def cv_accuracy(self) -> Optional[float]:
        return self.meta_model.cv_accuracy

    @property
    def classes_(self) -> list:
        return self.meta_model.classes_

    def meta_features(self, X: pd.DataFrame) -> pd.DataFrame:
        return pd.DataFrame(
            {
                name: self.base_models[name].predict_proba(X)[self.positive_label]
                for name in self.retained
            },
            index=X.index,
        )

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return self.meta_model.predict(self.meta_features(X))

    def predict_proba(self, X: pd.DataFrame) -> pd.DataFrame:
        return self.meta_model.predict_proba(self.meta_features(X))


@dataclass
class StackedEnsembleTrainer:
    """
    Two-stage stack: base models produce out-of-fold class probabilities,
    redundant ones are dropped, and a random forest learns from the rest.
    """

    base_trainers: Dict[str, Trainer]
    meta_trainer: Trainer = field(default_factory=RandomForestTrainer)
    correlation_threshold: float = 0.75
    positive_label: str = HIGH
    name: str = "Stacked Ensemble"

    def train(self, training_records, label_column, resampling=None) -> StackedModel:
        if not self.base_trainers:
            raise ValueError("StackedEnsembleTrainer needs at least one base trainer")

        resampling = resampling or ResamplingConfig()
        check_training_data(training_records, label_column)
        base_models = {
            key: trainer.train(training_records, label_column, resampling)
            for key, trainer in self.base_trainers.items()
        }
        return self.train_from_models(base_models, training_records, label_column, resampling)

    def train_from_models(
        self,
        base_models: Dict[str, TrainedModel],
        training_records: pd.DataFrame,
        label_column: str,
        resampling: Optional[ResamplingConfig] = None,
    ) -> StackedModel:
        """
        Stack base models that were already fitted on `training_records`.

        Only the out-of-fold meta-features and the second-stage model are fitted here.
        """
        missing = set(self.base_trainers) - set(base_models)
        if missing:
            raise ValueError(f"No trained base model for {sorted(missing)}")

        resampling = resampling or ResamplingConfig()
        X, y = split_features(training_records, label_column)

        base_models = {key: base_models[key] for key in self.base_trainers}
        oof: Dict[str, pd.Series] = {
            key: out_of_fold_probabilities(model, X, y, resampling, self.positive_label)
            for key, model in base_models.items()
        }

        predictions = pd.DataFrame(oof, index=X.index)
        accuracies = {
            key: self._standalone_accuracy(model, predictions[key], y)
            for key, model in base_models.items()
        }
        retained = select_uncorrelated(predictions, accuracies, self.correlation_threshold)
        logger.info("Stacking base models: %s", retained)

        meta_records = predictions[retained].copy()
        meta_records[label_column] = y
        meta_model = self.meta_trainer.train(meta_records, label_column, resampling)

        return StackedModel(
            name=self.name,
            base_models=base_models,
            meta_model=meta_model,
            retained=retained,
            correlations=predictions.corr(),
            positive_label=self.positive_label,
        )

    def _standalone_accuracy(self, model: TrainedModel, oof: pd.Series, y: pd.Series) -> float:
        if model.cv_accuracy is not None:
            return model.cv_accuracy
        # models fitted without resampling are scored on their out-of-fold votes
        predicted_positive = oof.to_numpy() >= 0.5
        return float(np.mean(predicted_positive == (y.to_numpy() == self.positive_label)))
