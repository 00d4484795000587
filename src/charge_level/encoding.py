import logging
from typing import Dict

import pandas as pd

from .config import FEATURE_COLUMNS
from .errors import EncodingError

logger = logging.getLogger(__name__)

SEX_CODES = {"female": 0, "male": 1}
SMOKER_CODES = {"no": 0, "yes": 1}
REGION_CODES = {"northeast": 1, "northwest": 2, "southeast": 3, "southwest": 4}

# Code used for unrecognized regions when the permissive fallback is enabled
FALLBACK_REGION = REGION_CODES["southwest"]

CODEBOOK: Dict[str, Dict[str, int]] = {
    "sex": SEX_CODES,
    "smoker": SMOKER_CODES,
    "region": REGION_CODES,
}
REGION_CATEGORIES = sorted(REGION_CODES.values())


def _normalize(value) -> str:
    return str(value).strip().lower()


def encode_value(column: str, value, permissive_region: bool = False) -> int:
    codes = CODEBOOK[column]
    key = _normalize(value)
    if key in codes:
        return codes[key]
    if column == "region" and permissive_region:
        logger.warning("Unknown region %r mapped to southwest (%d)", value, FALLBACK_REGION)
        return FALLBACK_REGION
    raise EncodingError(column, value)


def decode_value(column: str, code) -> str:
    for name, known in CODEBOOK[column].items():
        if known == code:
            return name
    raise EncodingError(column, code)


def _as_region_categorical(values) -> pd.Categorical:
    return pd.Categorical(values, categories=REGION_CATEGORIES)


def encode_features(df: pd.DataFrame, permissive_region: bool = False) -> pd.DataFrame:
    """
    Map sex, smoker and region strings to their numeric codes.

    sex: female=0, male=1; smoker: no=0, yes=1; region: northeast=1,
    northwest=2, southeast=3, southwest=4. Region is returned as a pandas
    categorical so model preprocessing one-hot encodes it. Any other column
    is passed through untouched.
    """
    missing = set(CODEBOOK) - set(df.columns)
    if missing:
        logger.error("Missing categorical columns: %s", missing)
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    df = df.copy()
    for column in ("sex", "smoker"):
        df[column] = [encode_value(column, v) for v in df[column]]
        df[column] = df[column].astype(int)

    regions = [encode_value("region", v, permissive_region) for v in df["region"]]
    df["region"] = _as_region_categorical(regions)
    return df


def decode_features(df: pd.DataFrame) -> pd.DataFrame:
    """Inverse of :func:`encode_features`."""
    df = df.copy()
    for column in CODEBOOK:
        if column in df.columns:
            df[column] = [decode_value(column, int(v)) for v in df[column]]
    return df


def make_feature_frame(age, sex, bmi, children, smoker, region) -> pd.DataFrame:
    """Single encoded record, laid out like the output of :func:`encode_features`."""
    record = {
        "age": age,
        "sex": int(sex),
        "bmi": float(bmi),
        "children": int(children),
        "smoker": int(smoker),
        "region": int(region),
    }
    for column in CODEBOOK:
        decode_value(column, record[column])

    df = pd.DataFrame([record], columns=FEATURE_COLUMNS)
    df["region"] = _as_region_categorical(df["region"])
    return df

