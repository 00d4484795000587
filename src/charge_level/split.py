import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Tuple, Union

import numpy as np
import pandas as pd

from .config import RANDOM_STATE, TRAIN_FRACTION

RandomState = Union[int, np.random.Generator]


@dataclass(frozen=True)
class Partition:
    train: np.ndarray
    test: np.ndarray

    @property
    def n(self) -> int:
        return len(self.train) + len(self.test)

    def apply(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
        if len(df) != self.n:
            raise ValueError(f"Partition covers {self.n} records, frame has {len(df)}")
        return df.iloc[self.train].copy(), df.iloc[self.test].copy()


def _as_generator(random_state: RandomState) -> np.random.Generator:
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def partition_indices(
    n: int,
    train_fraction: float = TRAIN_FRACTION,
    random_state: RandomState = RANDOM_STATE,
) -> Partition:
    """
    Randomly split record positions 0..n-1 into train and test sets.

    The train set holds floor(n * train_fraction) positions sampled without
    replacement; the test set holds the rest. Both are returned sorted.
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    if not 0.0 < train_fraction < 1.0:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    rng = _as_generator(random_state)
    # floor(n * f) in exact decimal arithmetic
    n_train = math.floor(int(n) * Fraction(str(train_fraction)))

    train = np.sort(rng.choice(n, size=n_train, replace=False)) if n else np.array([], dtype=int)
    mask = np.ones(n, dtype=bool)
    mask[train] = False
    test = np.flatnonzero(mask)

    return Partition(train=train.astype(int), test=test.astype(int))
