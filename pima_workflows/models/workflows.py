"""Workflows: a preprocessing recipe bound to a model specification."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Union

import numpy as np
import pandas as pd
from sklearn.pipeline import Pipeline

from pima_workflows.config.constants import MEASUREMENT_COLUMNS, OUTCOME_COLUMN
from pima_workflows.features.recipes import RecipeKind, get_recipe
from pima_workflows.models.registry import ModelSpec, get_model_spec

logger = logging.getLogger(__name__)


class IncompatibleWorkflowError(ValueError):
    """Raised when a model that needs imputation is paired with a recipe that leaves NaN."""


@dataclass(frozen=True)
class FitResult:
    """A workflow fitted on one training set."""

    workflow_id: str
    pipeline: Pipeline
    n_rows: int


@dataclass(frozen=True)
class Workflow:
    """A (recipe, model) pair fitted and evaluated as one unit."""

    recipe: RecipeKind
    model: ModelSpec

    def __post_init__(self):
        if not is_compatible(self.recipe, self.model):
            raise IncompatibleWorkflowError(
                f"Model '{self.model.name}' cannot handle missing values "
                f"and needs an imputing recipe, got '{self.recipe.value}'"
            )

    @property
    def workflow_id(self) -> str:
        return f"{self.recipe.value}_{self.model.name}"

    def build_pipeline(self, seed: int = 0) -> Pipeline:
        """Create the unfitted recipe + model pipeline."""
        return Pipeline(
            [
                ("recipe", self.recipe.build()),
                ("model", self.model.build(seed)),
            ]
        )

    def fit(self, rows: pd.DataFrame, seed: int = 0) -> FitResult:
        """Fit recipe and model on ``rows``.

        The recipe only sees ``rows``, so statistics such as imputation
        medians come from this training set alone.
        """
        X = rows[MEASUREMENT_COLUMNS]
        y = rows[OUTCOME_COLUMN].astype(str)
        pipeline = self.build_pipeline(seed).fit(X, y)
        return FitResult(self.workflow_id, pipeline, len(rows))

    def predict(self, fit_result: FitResult, rows: pd.DataFrame) -> pd.Series:
        """Predict outcome labels for ``rows`` with a fitted workflow."""
        if fit_result.workflow_id != self.workflow_id:
            raise ValueError(
                f"Fit result belongs to '{fit_result.workflow_id}', not '{self.workflow_id}'"
            )
        predictions = fit_result.pipeline.predict(rows[MEASUREMENT_COLUMNS])
        return pd.Series(
            np.asarray(predictions, dtype=object), index=rows.index, name="predicted"
        )


def is_compatible(recipe: RecipeKind, model: ModelSpec) -> bool:
    """Models that cannot handle missing values require an imputing recipe."""
    return model.handles_missing or recipe.imputes


def build_workflows(
    recipes: Iterable[Union[str, RecipeKind]],
    models: Iterable[Union[str, ModelSpec]],
) -> List[Workflow]:
    """Cross recipes with models, skipping incompatible pairs.

    Args:
        recipes: Recipe names or kinds
        models: Model names or specs

    Returns:
        Workflows in recipe-then-model order
    """
    recipe_kinds = [r if isinstance(r, RecipeKind) else get_recipe(r) for r in recipes]
    model_specs = [m if isinstance(m, ModelSpec) else get_model_spec(m) for m in models]

    workflows = []
    for recipe in recipe_kinds:
        for model in model_specs:
            if not is_compatible(recipe, model):
                logger.info(
                    f"Skipping {recipe.value}_{model.name}: "
                    f"'{model.name}' needs an imputing recipe"
                )
                continue
            workflows.append(Workflow(recipe, model))

    ids = [w.workflow_id for w in workflows]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValueError(f"Duplicate workflows: {duplicates}")

    logger.info(f"Built {len(workflows)} workflows: {ids}")
    return workflows
