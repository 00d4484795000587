import argparse
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .config import FEATURE_COLUMNS, LABEL_COL, PipelineConfig, load_config
from .data_loader import load_insurance_data
from .encoding import encode_features
from .ensemble import StackedEnsembleTrainer
from .evaluate import EvaluationReport, evaluate_model, summarize_results
from .labels import compute_threshold, derive_charge_levels
from .models import Classifier, RandomForestTrainer, Trainer, get_trainer_candidates
from .predict import describe_prediction
from .regression import RegressionResult, fit_log_linear_model
from .split import Partition, partition_indices

logger = logging.getLogger(__name__)

# (age, sex, bmi, children, smoker, region) in encoded form
EXAMPLE_PROFILES = [
    (19, 0, 27.9, 0, 1, 4),
    (45, 1, 31.5, 2, 0, 3),
    (62, 0, 24.3, 1, 0, 1),
]


@dataclass
class PipelineResult:
    threshold: float
    partition: Partition
    models: Dict[str, Classifier]
    reports: List[EvaluationReport]
    summary: pd.DataFrame
    regression: Optional[RegressionResult] = None
    predictions: List[str] = field(default_factory=list)


def build_trainers(config: PipelineConfig) -> Dict[str, Trainer]:
    """Standalone trainers plus the stack over the configured candidate pool."""
    candidates = get_trainer_candidates(
        n_estimators=config.n_estimators, random_state=config.random_state
    )
    unknown = set(config.ensemble_candidates) - set(candidates)
    if unknown:
        raise ValueError(f"Unknown ensemble candidates: {sorted(unknown)}")

    trainers: Dict[str, Trainer] = dict(candidates)
    trainers["stacked_ensemble"] = StackedEnsembleTrainer(
        base_trainers={name: candidates[name] for name in config.ensemble_candidates},
        meta_trainer=RandomForestTrainer(
            n_estimators=config.n_estimators, random_state=config.random_state
        ),
        correlation_threshold=config.correlation_threshold,
    )
    return trainers


def run_pipeline(config: PipelineConfig, df: Optional[pd.DataFrame] = None) -> PipelineResult:
    """Load, encode, label, split, train every model and score it on the test partition."""
    if df is None:
        df = load_insurance_data(config.data_path)

    encoded = encode_features(df, permissive_region=config.permissive_region)
    partition = partition_indices(len(encoded), config.train_fraction, config.random_state)
    logger.info("Partition: %d train / %d test", len(partition.train), len(partition.test))

    threshold = compute_threshold(encoded, scope=config.threshold_scope, partition=partition)
    labelled, threshold = derive_charge_levels(encoded, threshold=threshold)
    train_df, test_df = partition.apply(labelled)

    regression = None
    if config.fit_regression:
        regression = fit_log_linear_model(train_df, test_df)

    model_columns = FEATURE_COLUMNS + [LABEL_COL]
    train_records = train_df[model_columns]
    test_records = test_df[model_columns]

    models: Dict[str, Classifier] = {}
    reports: List[EvaluationReport] = []
    keys_by_name: Dict[str, str] = {}
    for key, trainer in build_trainers(config).items():
        logger.info("=== Training model: %s ===", trainer.name)
        if isinstance(trainer, StackedEnsembleTrainer):
            # the stack comes last, so its base models are already trained
            model = trainer.train_from_models(
                {name: models[name] for name in trainer.base_trainers},
                train_records,
                LABEL_COL,
                config.resampling,
            )
        else:
            model = trainer.train(train_records, LABEL_COL, config.resampling)
        models[key] = model
        keys_by_name[trainer.name] = key
        reports.append(evaluate_model(model, test_records, LABEL_COL, name=trainer.name))

    summary = summarize_results(reports)
    logger.info("Best model on test accuracy: %s", summary.index[0])

    best = models[keys_by_name[summary.index[0]]]
    predictions = [describe_prediction(best, *profile) for profile in EXAMPLE_PROFILES]

    return PipelineResult(
        threshold=threshold,
        partition=partition,
        models=models,
        reports=reports,
        summary=summary,
        regression=regression,
        predictions=predictions,
    )


def print_results(result: PipelineResult) -> None:
    print(f"Log-charge threshold: {result.threshold:.4f}")
    if result.regression is not None:
        print()
        print(result.regression.format())

    for report in result.reports:
        print()
        print(report.format())

    tree = result.models.get("decision_tree")
    if tree is not None and getattr(tree, "tree_text", None):
        print("\n=== Decision tree ===")
        print(tree.tree_text)

    stack = result.models.get("stacked_ensemble")
    if stack is not None:
        print("\n=== Stacking base-model correlations ===")
        print(stack.correlations.round(3).to_string())
        print(f"Retained: {', '.join(stack.retained)}")
        if stack.dropped:
            print(f"Dropped: {', '.join(stack.dropped)}")

    print("\n=== Test Results (sorted by accuracy) ===")
    print(result.summary)

    print()
    for sentence in result.predictions:
        print(sentence)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Classify insurance charge levels.")
    parser.add_argument("--config", default=None, help="YAML pipeline configuration")
    parser.add_argument("--data", default=None, help="insurance CSV (overrides config)")
    parser.add_argument("--threshold-scope", choices=["full", "train"], default=None)
    parser.add_argument(
        "--permissive-region",
        action="store_true",
        help="map unknown regions to southwest instead of failing",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> PipelineResult:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )

    config = load_config(args.config)
    overrides = {}
    if args.data is not None:
        overrides["data_path"] = args.data
    if args.threshold_scope is not None:
        overrides["threshold_scope"] = args.threshold_scope
    if args.permissive_region:
        overrides["permissive_region"] = True
    if overrides:
        config = replace(config, **overrides)

    result = run_pipeline(config)
    print_results(result)
    return result


if __name__ == "__main__":
    main()
