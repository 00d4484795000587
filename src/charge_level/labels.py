import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .config import HIGH, LABEL_COL, LOG_TARGET_COL, LOW, TARGET_COL, THRESHOLD_SCOPES
from .split import Partition

logger = logging.getLogger(__name__)


def log_charges(charges) -> pd.Series:
    charges = pd.Series(charges, dtype=float)
    if charges.isna().any():
        raise ValueError("charges contain missing values")
    if (charges <= 0).any():
        raise ValueError("charges must be strictly positive to take logs")
    return np.log(charges)


def mean_log_threshold(charges) -> float:
    """Arithmetic mean of ln(charges), i.e. the log of their geometric mean."""
    logs = log_charges(charges)
    if logs.empty:
        raise ValueError("cannot compute a threshold from zero records")
    return float(logs.mean())


def compute_threshold(
    df: pd.DataFrame,
    scope: str = "full",
    partition: Optional[Partition] = None,
    charges_col: str = TARGET_COL,
) -> float:
    """
    Threshold separating High from Low charges.

    scope="full" uses every record, test rows included, and reproduces the
    reported results. scope="train" uses only the training rows of
    `partition`.
    """
    if scope not in THRESHOLD_SCOPES:
        raise ValueError(f"scope must be one of {THRESHOLD_SCOPES}, got {scope!r}")

    if scope == "full":
        threshold = mean_log_threshold(df[charges_col])
    else:
        if partition is None:
            raise ValueError("scope='train' requires a partition")
        threshold = mean_log_threshold(df[charges_col].iloc[partition.train])

    logger.info("Log-charge threshold (%s scope): %.4f", scope, threshold)
    return threshold


def derive_charge_levels(
    df: pd.DataFrame,
    threshold: Optional[float] = None,
    charges_col: str = TARGET_COL,
) -> Tuple[pd.DataFrame, float]:
    """
    Add `log_charge` and `charge_level` ("High" when log_charge >= threshold).

    Without an explicit threshold the full-data mean of ln(charges) is used.
    """
    if threshold is None:
        threshold = compute_threshold(df, scope="full", charges_col=charges_col)

    df = df.copy()
    df[LOG_TARGET_COL] = log_charges(df[charges_col]).to_numpy()
    df[LABEL_COL] = np.where(df[LOG_TARGET_COL] >= threshold, HIGH, LOW)

    counts = df[LABEL_COL].value_counts()
    logger.info(
        "Charge levels: %d High / %d Low",
        int(counts.get(HIGH, 0)),
        int(counts.get(LOW, 0)),
    )
    return df, threshold
