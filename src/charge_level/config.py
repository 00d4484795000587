from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml
from sklearn.model_selection import RepeatedStratifiedKFold

# Paths
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = PROJECT_ROOT / "data"
RAW_DATA = DATA_DIR / "raw" / "insurance.csv"
CONFIG_PATH = PROJECT_ROOT / "configs" / "pipeline.yaml"

# Reproducibility
RANDOM_STATE = 42
TRAIN_FRACTION = 0.7

TARGET_COL = "charges"
LOG_TARGET_COL = "log_charge"
LABEL_COL = "charge_level"

HIGH = "High"
LOW = "Low"
LABELS = (HIGH, LOW)

# Columns of the classic insurance dataset
NUM_FEATURES = ["age", "bmi", "children"]
CAT_FEATURES = ["sex", "smoker", "region"]
FEATURE_COLUMNS = ["age", "sex", "bmi", "children", "smoker", "region"]
RAW_COLUMNS = FEATURE_COLUMNS + [TARGET_COL]

THRESHOLD_SCOPES = ("full", "train")

# Base-model pool offered to the stacker
ENSEMBLE_CANDIDATES = ("random_forest", "svm_poly", "naive_bayes", "logistic_regression")


@dataclass(frozen=True)
class ResamplingConfig:
    """Repeated k-fold cross-validation shared by every trainer."""

    n_splits: int = 5
    n_repeats: int = 3
    random_state: int = RANDOM_STATE
    n_jobs: Optional[int] = None
    scoring: str = "accuracy"

    def __post_init__(self):
        if self.n_splits < 2:
            raise ValueError(f"n_splits must be at least 2, got {self.n_splits}")
        if self.n_repeats < 1:
            raise ValueError(f"n_repeats must be at least 1, got {self.n_repeats}")

    def splitter(self) -> RepeatedStratifiedKFold:
        return RepeatedStratifiedKFold(
            n_splits=self.n_splits,
            n_repeats=self.n_repeats,
            random_state=self.random_state,
        )


@dataclass
class PipelineConfig:
    data_path: Path = RAW_DATA
    train_fraction: float = TRAIN_FRACTION
    random_state: int = RANDOM_STATE
    threshold_scope: str = "full"
    permissive_region: bool = False
    n_estimators: int = 500
    correlation_threshold: float = 0.75
    ensemble_candidates: Tuple[str, ...] = ENSEMBLE_CANDIDATES
    fit_regression: bool = True
    resampling: ResamplingConfig = field(default_factory=ResamplingConfig)

    def __post_init__(self):
        self.data_path = Path(self.data_path)
        self.ensemble_candidates = tuple(self.ensemble_candidates)
        if self.threshold_scope not in THRESHOLD_SCOPES:
            raise ValueError(
                f"threshold_scope must be one of {THRESHOLD_SCOPES}, got {self.threshold_scope!r}"
            )
        if not 0.0 < self.train_fraction < 1.0:
            raise ValueError(f"train_fraction must be in (0, 1), got {self.train_fraction}")

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from a (possibly nested) mapping, e.g. parsed YAML."""
        raw = dict(raw or {})
        resampling = raw.pop("resampling", None) or {}
        known = {f.name for f in fields(cls)} - {"resampling"}
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        resampling_known = {f.name for f in fields(ResamplingConfig)}
        unknown = set(resampling) - resampling_known
        if unknown:
            raise ValueError(f"Unknown resampling keys: {sorted(unknown)}")

        return cls(resampling=ResamplingConfig(**resampling), **raw)


def load_config(path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """
    Load pipeline settings from YAML. A missing default file means defaults.
    """
    cfg_path = Path(path) if path is not None else CONFIG_PATH
    if not cfg_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return PipelineConfig()

    with open(cfg_path, "r") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {cfg_path} must contain a mapping")
    return PipelineConfig.from_dict(raw)
