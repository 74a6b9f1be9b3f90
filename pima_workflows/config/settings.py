"""Configuration loading for the workflow comparison."""

import copy
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG = {
    "data": {
        "raw_path": "data/pima-indians-diabetes-data.csv",
        "random_seed": 0,
        "train_fraction": 0.75,
        "n_folds": 10,
    },
    "recipes": ["null", "imputer"],
    "models": [
        "decision_tree",
        "rand_forest",
        "boost_tree",
        "logistic_reg",
        "svm_linear",
    ],
    "evaluation": {
        "rank_metric": "accuracy",
        "n_jobs": 1,
    },
    "output": {
        "plots_dir": "plots",
        "reports_dir": "reports",
    },
    "mlflow": {
        "enabled": False,
        "tracking_uri": "mlruns",
        "experiment_name": "pima-workflow-comparison",
    },
    "logging": {
        "log_level": "INFO",
    },
}


def merge_config(base: dict, overrides: dict) -> dict:
    """Recursively merge ``overrides`` into a copy of ``base``.

    Nested dictionaries are merged key by key; any other value in
    ``overrides`` (lists included) replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load analysis configuration, falling back to defaults for missing keys."""
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, "r") as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    return merge_config(DEFAULT_CONFIG, overrides)
