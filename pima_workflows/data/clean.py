"""Cleaning of zero-coded missing values."""

from typing import Iterable, Optional

import numpy as np
import pandas as pd

from pima_workflows.config.constants import MEASUREMENT_COLUMNS, SENTINEL_COLUMNS


def clean(df: pd.DataFrame, sentinel_columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Replace zeros in sentinel columns with NaN.

    A zero blood pressure, BMI, glucose, insulin or skinfold reading means the
    value was not recorded. Other columns are returned untouched, and
    cleaning an already-cleaned table changes nothing.

    Args:
        df: Observation table
        sentinel_columns: Columns where zero means missing

    Returns:
        Cleaned copy of ``df``
    """
    if sentinel_columns is None:
        sentinel_columns = SENTINEL_COLUMNS

    cleaned = df.copy()
    for col in sentinel_columns:
        if col not in cleaned.columns:
            raise KeyError(f"Sentinel column '{col}' not found in table")
        cleaned[col] = cleaned[col].mask(cleaned[col] == 0, np.nan)

    return cleaned


def missing_summary(df: pd.DataFrame, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Summarise explicit and zero-coded missing values per measurement.

    Args:
        df: Observation table (raw or cleaned)
        columns: Columns to summarise, defaults to the eight measurements

    Returns:
        DataFrame indexed by column with ``missing``, ``zeros``,
        ``missing_pct`` and ``sentinel`` columns
    """
    if columns is None:
        columns = MEASUREMENT_COLUMNS
    columns = list(columns)

    summary = pd.DataFrame(
        {
            "missing": df[columns].isna().sum(),
            "zeros": (df[columns] == 0).sum(),
        }
    )
    summary["missing_pct"] = summary["missing"] / len(df) * 100 if len(df) else 0.0
    summary["sentinel"] = [col in SENTINEL_COLUMNS for col in columns]
    return summary
