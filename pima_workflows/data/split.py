"""Stratified train/test split and cross-validation folds."""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from pima_workflows.config.constants import OUTCOME_COLUMN, POSITIVE_LABEL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fold:
    """One resample of the training partition.

    ``analysis`` and ``assessment`` hold integer positions into the train
    table; the assessment rows are the fold itself.
    """

    fold_id: str
    analysis: np.ndarray
    assessment: np.ndarray


def split_train_test(
    df: pd.DataFrame,
    train_fraction: float = 0.75,
    strata: str = OUTCOME_COLUMN,
    seed: int = 0,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split rows into train and test partitions stratified on ``strata``.

    Args:
        df: Cleaned observation table
        train_fraction: Share of rows assigned to the train partition
        strata: Column whose label proportions are preserved
        seed: Random seed

    Returns:
        Tuple of (train, test); both keep the original row index
    """
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    train, test = train_test_split(
        df, train_size=train_fraction, stratify=df[strata].astype(str), random_state=seed
    )

    logger.info(f"Train size: {len(train)}, Test size: {len(test)}")
    logger.info(f"Train positive rate: {(train[strata] == POSITIVE_LABEL).mean():.3f}")
    logger.info(f"Test positive rate: {(test[strata] == POSITIVE_LABEL).mean():.3f}")

    return train, test


def make_folds(
    train: pd.DataFrame,
    n_folds: int = 10,
    strata: str = OUTCOME_COLUMN,
    seed: int = 0,
) -> List[Fold]:
    """Partition the train table into ``n_folds`` stratified folds.

    Every row is assessed in exactly one fold. The assignment depends only
    on ``train`` and ``seed``.

    Raises:
        ValueError: If a label has fewer rows than ``n_folds``
    """
    counts = train[strata].value_counts()
    counts = counts[counts > 0]
    if (counts < n_folds).any():
        raise ValueError(
            f"Cannot build {n_folds} stratified folds: label counts are {counts.to_dict()}"
        )

    splitter = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed)
    width = max(2, len(str(n_folds)))

    folds = []
    for i, (analysis, assessment) in enumerate(
        splitter.split(np.zeros(len(train)), train[strata].astype(str)), start=1
    ):
        folds.append(Fold(f"Fold{i:0{width}d}", analysis, assessment))

    return folds


def fold_assignment(train: pd.DataFrame, folds: List[Fold]) -> pd.Series:
    """Map each train row label to the id of the fold that assesses it."""
    assignment = pd.Series(index=train.index, dtype=object, name="fold")
    for fold in folds:
        assignment.iloc[fold.assessment] = fold.fold_id
    return assignment
