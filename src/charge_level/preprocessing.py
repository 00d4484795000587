import numpy as np
from typing import List, Tuple

from sklearn.base import BaseEstimator
from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler


def _build_column_transformer(
    scale_numeric: bool = True, drop_first: bool = False
) -> ColumnTransformer:
    """Scale numeric columns and one-hot encode categorical ones (e.g. region codes)."""
    numeric_transformer = (
        Pipeline(steps=[("scaler", StandardScaler())]) if scale_numeric else "passthrough"
    )

    categorical_transformer = Pipeline(
        steps=[("onehot", OneHotEncoder(handle_unknown="ignore", drop="first" if drop_first else None))]
    )

    numeric_selector = make_column_selector(dtype_include=np.number)
    categorical_selector = make_column_selector(dtype_exclude=np.number)

    return ColumnTransformer(
        transformers=[
            ("num", numeric_transformer, numeric_selector),
            ("cat", categorical_transformer, categorical_selector),
        ],
    )


def build_model_pipeline(
    model: BaseEstimator, scale_numeric: bool = True, drop_first: bool = False
) -> Pipeline:
    """Preprocessing followed by `model`; hyper-parameters are addressed as `model__<name>`."""
    steps: List[Tuple[str, BaseEstimator]] = [
        ("preprocessing", _build_column_transformer(scale_numeric, drop_first)),
        ("model", model),
    ]
    return Pipeline(steps=steps)


def transformed_feature_names(pipeline: Pipeline) -> List[str]:
    """Column names seen by the final estimator of a fitted pipeline."""
    return [str(name) for name in pipeline[:-1].get_feature_names_out()]
