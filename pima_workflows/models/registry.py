"""Catalogue of classifier configurations compared by the analysis."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np
import pandas as pd
from lightgbm import LGBMClassifier
from sklearn.base import BaseEstimator, ClassifierMixin, clone
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.svm import LinearSVC
from sklearn.tree import DecisionTreeClassifier

logger = logging.getLogger(__name__)


class CompleteCaseClassifier(ClassifierMixin, BaseEstimator):
    """Fit a classifier on complete rows only.

    Rows with any missing feature are dropped for fitting. At prediction
    time those rows receive the most frequent training label.
    """

    def __init__(self, estimator=None):
        self.estimator = estimator

    def fit(self, X, y):
        """Fit the wrapped estimator on rows with no missing feature.

        Raises:
            ValueError: If every row has a missing feature
        """
        X_df = pd.DataFrame(X)
        y = pd.Series(np.asarray(y), index=X_df.index)
        complete = ~X_df.isna().any(axis=1)

        if not complete.any():
            raise ValueError("No complete rows to fit on")
        if complete.sum() < len(X_df):
            logger.debug(f"Dropping {(~complete).sum()} incomplete rows before fitting")

        estimator = self.estimator if self.estimator is not None else LogisticRegression()
        self.estimator_ = clone(estimator).fit(X_df[complete], y[complete])
        self.classes_ = self.estimator_.classes_
        self.fallback_label_ = y.value_counts().idxmax()
        return self

    def predict(self, X):
        """Predict complete rows with the fitted estimator, others with the fallback label."""
        X_df = pd.DataFrame(X)
        complete = (~X_df.isna().any(axis=1)).to_numpy()

        predictions = np.full(len(X_df), self.fallback_label_, dtype=object)
        if complete.any():
            predictions[complete] = self.estimator_.predict(X_df[complete])
        return predictions


def _decision_tree(seed: int):
    return DecisionTreeClassifier(random_state=seed)


def _rand_forest(seed: int):
    return RandomForestClassifier(random_state=seed)


def _boost_tree(seed: int):
    return LGBMClassifier(random_state=seed, deterministic=True, force_row_wise=True, verbose=-1)


def _logistic_reg(seed: int):
    return CompleteCaseClassifier(LogisticRegression(max_iter=1000))


def _svm_linear(seed: int):
    return LinearSVC(random_state=seed)


@dataclass(frozen=True)
class ModelSpec:
    """A classifier configuration.

    Attributes:
        name: Identifier used in workflow ids
        engine: Library that fits the model
        handles_missing: Whether fitting tolerates missing feature values
        builder: Callable taking a seed and returning an unfitted estimator
    """

    name: str
    engine: str
    handles_missing: bool
    builder: Callable[[int], BaseEstimator]

    def build(self, seed: int = 0) -> BaseEstimator:
        """Return an unfitted estimator seeded with ``seed``."""
        return self.builder(seed)

    def fit(self, X: pd.DataFrame, y, seed: int = 0) -> BaseEstimator:
        """Fit a fresh estimator on ``X`` and ``y``."""
        return self.build(seed).fit(X, y)

    @staticmethod
    def predict(fitted: BaseEstimator, X: pd.DataFrame) -> np.ndarray:
        """Predict labels with a fitted estimator as an object array."""
        return np.asarray(fitted.predict(X), dtype=object)


MODEL_REGISTRY: Dict[str, ModelSpec] = {
    spec.name: spec
    for spec in [
        ModelSpec("decision_tree", "sklearn", True, _decision_tree),
        ModelSpec("rand_forest", "sklearn", True, _rand_forest),
        ModelSpec("boost_tree", "lightgbm", True, _boost_tree),
        ModelSpec("logistic_reg", "sklearn", True, _logistic_reg),
        ModelSpec("svm_linear", "sklearn", False, _svm_linear),
    ]
}


def get_model_spec(name: str) -> ModelSpec:
    """Look up a model configuration by name.

    Raises:
        KeyError: If the model is not registered
    """
    if name not in MODEL_REGISTRY:
        raise KeyError(f"Unknown model '{name}', expected one of {list(MODEL_REGISTRY)}")
    return MODEL_REGISTRY[name]
