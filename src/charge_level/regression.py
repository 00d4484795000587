import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.linear_model import LinearRegression
from sklearn.pipeline import Pipeline

from .config import FEATURE_COLUMNS, TARGET_COL
from .evaluate import regression_metrics
from .labels import log_charges
from .preprocessing import build_model_pipeline, transformed_feature_names

logger = logging.getLogger(__name__)


class RegressionFeatures(BaseEstimator, TransformerMixin):
    """sklearn-compatible transformer adding the terms of the log-charge model.

    Expects encoded records (smoker coded 0/1).
    """

    def __init__(self, obesity_bmi: float = 30.0):
        self.obesity_bmi = obesity_bmi

    def fit(self, X, y: Optional[pd.Series] = None):
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        df = X.copy()

        # Polynomial age term
        df["age_squared"] = df["age"] ** 2

        # Obesity flag and its interaction with smoking
        df["high_bmi"] = (df["bmi"] >= self.obesity_bmi).astype(int)
        df["high_bmi_smoker"] = df["high_bmi"] * df["smoker"]

        return df


@dataclass
class RegressionResult:
    pipeline: Pipeline
    coefficients: pd.Series
    train_metrics: Dict[str, float]
    test_metrics: Dict[str, float]
    test_metrics_dollars: Dict[str, float]

    def format(self) -> str:
        lines = ["=== Log-linear regression of charges ===", self.coefficients.to_string(), ""]
        for title, metrics in (
            ("Train (log scale)", self.train_metrics),
            ("Test (log scale)", self.test_metrics),
            ("Test (dollars)", self.test_metrics_dollars),
        ):
            lines.append(
                f"{title}: RMSE {metrics['rmse']:.4f} | R2 {metrics['r2']:.4f} | MAE {metrics['mae']:.4f}"
            )
        return "\n".join(lines)


def build_regression_pipeline() -> Pipeline:
    model_pipeline = build_model_pipeline(LinearRegression(), scale_numeric=False, drop_first=True)
    return Pipeline(steps=[("features", RegressionFeatures())] + model_pipeline.steps)


def fit_log_linear_model(
    train_df: pd.DataFrame,
    test_df: pd.DataFrame,
    charges_col: str = TARGET_COL,
) -> RegressionResult:
    """
    Ordinary least squares of ln(charges) on the encoded features plus
    age^2 and the obesity/smoking interaction.
    """
    logger.info("Fitting log-linear regression on %d records", len(train_df))

    X_train = train_df[FEATURE_COLUMNS]
    X_test = test_df[FEATURE_COLUMNS]
    y_train = log_charges(train_df[charges_col])
    y_test = log_charges(test_df[charges_col])

    pipeline = build_regression_pipeline()
    pipeline.fit(X_train, y_train)

    model = pipeline[-1]
    names = transformed_feature_names(pipeline[1:])
    coefficients = pd.Series(
        np.concatenate([[model.intercept_], model.coef_]),
        index=["intercept"] + names,
        name="coefficient",
    )

    train_pred = pipeline.predict(X_train)
    test_pred = pipeline.predict(X_test)

    result = RegressionResult(
        pipeline=pipeline,
        coefficients=coefficients,
        train_metrics=regression_metrics(y_train, train_pred),
        test_metrics=regression_metrics(y_test, test_pred),
        test_metrics_dollars=regression_metrics(np.exp(y_test), np.exp(test_pred)),
    )
    logger.info("Regression test R2 (log scale): %.4f", result.test_metrics["r2"])
    return result

