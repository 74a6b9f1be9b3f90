"""Preprocessing recipes for the workflow comparison."""

from enum import Enum

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import FunctionTransformer

from pima_workflows.config.constants import INDICATOR_PREFIX, SENTINEL_COLUMNS


class MedianIndicatorImputer(TransformerMixin, BaseEstimator):
    """Flag and median-impute missing values in sentinel columns.

    Medians are learned from the rows passed to ``fit`` only. An indicator
    column is added for each column that had missing values during fit, so
    data with nothing to impute passes through unchanged.
    """

    def __init__(self, columns_to_impute=None):
        """Initialize imputer.

        Args:
            columns_to_impute: List of column names to impute, defaults to
                the sentinel columns
        """
        self.columns_to_impute = columns_to_impute

    def _columns(self):
        if self.columns_to_impute is None:
            return list(SENTINEL_COLUMNS)
        return list(self.columns_to_impute)

    def fit(self, X, y=None):
        """Fit imputer by calculating medians of the observed values.

        Args:
            X: Input features (DataFrame)
            y: Target (unused)

        Returns:
            self
        """
        X_df = pd.DataFrame(X)
        columns = self._columns()

        missing_cols = set(columns) - set(X_df.columns)
        if missing_cols:
            raise KeyError(f"Columns to impute not found: {sorted(missing_cols)}")

        self.medians_ = {col: X_df[col].median() for col in columns}
        self.indicator_columns_ = [col for col in columns if X_df[col].isna().any()]
        return self

    def transform(self, X):
        """Transform by adding indicator columns and filling missing values.

        Args:
            X: Input features (DataFrame)

        Returns:
            DataFrame with the original columns followed by the indicators
        """
        X_df = pd.DataFrame(X).copy()

        for col in self.indicator_columns_:
            X_df[f"{INDICATOR_PREFIX}{col}"] = X_df[col].isna().astype(int)

        for col, median in self.medians_.items():
            X_df[col] = X_df[col].fillna(median)

        return X_df


class RecipeKind(str, Enum):
    """Available preprocessing recipes."""

    NULL = "null"
    IMPUTER = "imputer"

    @property
    def imputes(self) -> bool:
        """Whether the recipe removes missing values."""
        return self is RecipeKind.IMPUTER

    def build(self):
        """Create an unfitted transformer for this recipe."""
        if self is RecipeKind.IMPUTER:
            return MedianIndicatorImputer()
        return FunctionTransformer(validate=False)


def get_recipe(name) -> RecipeKind:
    """Look up a recipe by name.

    Raises:
        KeyError: If no recipe has that name
    """
    try:
        return RecipeKind(name)
    except ValueError:
        raise KeyError(
            f"Unknown recipe '{name}', expected one of {[r.value for r in RecipeKind]}"
        ) from None
