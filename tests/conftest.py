import numpy as np
import pandas as pd
import pytest

from charge_level.config import FEATURE_COLUMNS, LABEL_COL, ResamplingConfig
from charge_level.encoding import encode_features
from charge_level.labels import derive_charge_levels

REGIONS = ["northeast", "northwest", "southeast", "southwest"]


def make_insurance_frame(n: int = 200, seed: int = 0) -> pd.DataFrame:
    """Synthetic insurance records where smoking drives charges."""
    rng = np.random.default_rng(seed)
    smoker = rng.random(n) < 0.35
    age = rng.integers(18, 65, size=n)
    charges = np.exp(8.0 + 1.6 * smoker + 0.02 * (age - 40) + rng.normal(0, 0.15, size=n))
    return pd.DataFrame(
        {
            "age": age,
            "sex": rng.choice(["female", "male"], size=n),
            "bmi": np.round(rng.normal(30, 5, size=n), 1),
            "children": rng.integers(0, 4, size=n),
            "smoker": np.where(smoker, "yes", "no"),
            "region": rng.choice(REGIONS, size=n),
            "charges": np.round(charges, 2),
        }
    )


@pytest.fixture()
def raw_df() -> pd.DataFrame:
    return make_insurance_frame()


@pytest.fixture()
def labelled_df(raw_df) -> pd.DataFrame:
    df, _ = derive_charge_levels(encode_features(raw_df))
    return df


@pytest.fixture()
def model_records(labelled_df) -> pd.DataFrame:
    return labelled_df[FEATURE_COLUMNS + [LABEL_COL]]


@pytest.fixture()
def fast_resampling() -> ResamplingConfig:
    return ResamplingConfig(n_splits=3, n_repeats=1, random_state=0)
