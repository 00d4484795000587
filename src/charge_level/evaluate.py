from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix, mean_absolute_error, mean_squared_error, r2_score

from .config import HIGH, LABEL_COL, LOW
from .models import Classifier

UNDEFINED = "undefined"


def _ratio(numerator: int, denominator: int) -> Optional[float]:
    if denominator == 0:
        return None
    return numerator / denominator


def _fmt(value: Optional[float]) -> str:
    return UNDEFINED if value is None else f"{value:.4f}"


@dataclass(frozen=True)
class ClassMetrics:
    """Per-class scores; None marks a metric that has no defined value."""

    label: str
    precision: Optional[float]
    recall: Optional[float]
    f1: Optional[float]
    support: int


@dataclass(frozen=True)
class ConfusionMatrix:
    tp: int
    fp: int
    fn: int
    tn: int
    positive: str = HIGH
    negative: str = LOW

    @classmethod
    def from_counts(cls, tp: int, fp: int, fn: int, tn: int, positive: str = HIGH, negative: str = LOW):
        return cls(int(tp), int(fp), int(fn), int(tn), positive, negative)

    @classmethod
    def from_labels(cls, y_true, y_pred, positive: str = HIGH, negative: str = LOW):
        # rows are actual, columns predicted, in [positive, negative] order
        matrix = confusion_matrix(
            np.asarray(y_true), np.asarray(y_pred), labels=[positive, negative]
        )
        (tp, fn), (fp, tn) = matrix
        return cls.from_counts(tp, fp, fn, tn, positive, negative)

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.fn + self.tn

    @property
    def accuracy(self) -> Optional[float]:
        return _ratio(self.tp + self.tn, self.total)

    def class_metrics(self, label: str) -> ClassMetrics:
        """
        Precision, recall and F1 treating `label` as the positive class.

        All three are undefined when the class never occurs in the ground
        truth or never occurs in the predictions.
        """
        if label == self.positive:
            hits, false_alarms, misses = self.tp, self.fp, self.fn
        elif label == self.negative:
            hits, false_alarms, misses = self.tn, self.fn, self.fp
        else:
            raise ValueError(f"Unknown label {label!r}")

        actual = hits + misses
        predicted = hits + false_alarms
        if actual == 0 or predicted == 0:
            return ClassMetrics(label, None, None, None, actual)

        precision = hits / predicted
        recall = hits / actual
        f1 = None
        if precision + recall > 0:
            f1 = 2 * precision * recall / (precision + recall)
        return ClassMetrics(label, precision, recall, f1, actual)

    @property
    def precision(self) -> Optional[float]:
        return self.class_metrics(self.positive).precision

    @property
    def recall(self) -> Optional[float]:
        return self.class_metrics(self.positive).recall

    @property
    def f1(self) -> Optional[float]:
        return self.class_metrics(self.positive).f1

    def to_frame(self) -> pd.DataFrame:
        """Prediction (rows) by reference (columns) table."""
        return pd.DataFrame(
            [[self.tp, self.fp], [self.fn, self.tn]],
            index=pd.Index([self.positive, self.negative], name="Prediction"),
            columns=pd.Index([self.positive, self.negative], name="Reference"),
        )


@dataclass(frozen=True)
class EvaluationReport:
    model_name: str
    matrix: ConfusionMatrix
    cv_accuracy: Optional[float] = None

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {
            "accuracy": self.matrix.accuracy,
            "precision": self.matrix.precision,
            "recall": self.matrix.recall,
            "f1": self.matrix.f1,
            "cv_accuracy": self.cv_accuracy,
        }

    def format(self) -> str:
        lines = [f"=== {self.model_name} ===", self.matrix.to_frame().to_string(), ""]
        lines.append(f"Accuracy : {_fmt(self.matrix.accuracy)}")
        if self.cv_accuracy is not None:
            lines.append(f"CV Accuracy : {_fmt(self.cv_accuracy)}")
        for label in (self.matrix.positive, self.matrix.negative):
            m = self.matrix.class_metrics(label)
            lines.append(
                f"[{label}] Precision: {_fmt(m.precision)} | Recall: {_fmt(m.recall)} | "
                f"F1: {_fmt(m.f1)} | Support: {m.support}"
            )
        return "\n".join(lines)


def evaluate_model(
    model: Classifier,
    test_records: pd.DataFrame,
    label_column: str = LABEL_COL,
    name: Optional[str] = None,
) -> EvaluationReport:
    """Predict the held-out records (labels withheld) and tabulate the outcome."""
    X_test = test_records.drop(columns=[label_column])
    y_test = test_records[label_column]

    y_pred = model.predict(X_test)
    matrix = ConfusionMatrix.from_labels(y_test, y_pred)
    return EvaluationReport(
        model_name=name or getattr(model, "name", type(model).__name__),
        matrix=matrix,
        cv_accuracy=getattr(model, "cv_accuracy", None),
    )


def summarize_results(reports: Iterable[EvaluationReport]) -> pd.DataFrame:
    reports = list(reports)
    if not reports:
        return pd.DataFrame(columns=["accuracy", "precision", "recall", "f1", "cv_accuracy"])
    df = pd.DataFrame({report.model_name: report.as_dict() for report in reports}).T
    df = df.astype(float).sort_values("accuracy", ascending=False)
    return df


def regression_metrics(y_true, y_pred) -> Dict[str, float]:
    rmse = float(np.sqrt(mean_squared_error(y_true, y_pred)))
    r2 = r2_score(y_true, y_pred)
    mae = mean_absolute_error(y_true, y_pred)

    return {
        "rmse": rmse,
        "r2": r2,
        "mae": mae,
    }
