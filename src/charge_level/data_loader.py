import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .config import RAW_COLUMNS, RAW_DATA

logger = logging.getLogger(__name__)


def load_insurance_data(path: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """
    Load raw insurance data from CSV.

    Required columns: age, sex, bmi, children, smoker, region, charges.
    """
    csv_path = Path(path) if path is not None else RAW_DATA
    logger.info("Loading data from %s", csv_path)
    df = pd.read_csv(csv_path)

    missing = set(RAW_COLUMNS) - set(df.columns)
    if missing:
        logger.error("Missing required columns: %s", missing)
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    logger.info("Loaded %d records", len(df))
    return df[RAW_COLUMNS].copy()
