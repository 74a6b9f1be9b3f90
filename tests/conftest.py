"""Synthetic Pima-shaped data for the test suite."""

import numpy as np
import pandas as pd
import pytest

from pima_workflows.config.constants import RAW_COLUMNS, SENTINEL_COLUMNS
from pima_workflows.data.load import label_outcome


def make_raw_frame(n_rows=120, n_positive=42, zero_share=0.1, seed=0):
    """Build a raw table with the file's columns and "1"/"0" class codes.

    Measurements shift with the class so models have something to learn.
    A ``zero_share`` of each sentinel column is set to 0.
    """
    rng = np.random.default_rng(seed)
    codes = np.array(["1"] * n_positive + ["0"] * (n_rows - n_positive))
    rng.shuffle(codes)
    positive = codes == "1"

    df = pd.DataFrame(
        {
            "times_pregnant": rng.integers(0, 12, n_rows),
            "plasma_concentration": np.round(rng.normal(np.where(positive, 145, 110), 20), 0),
            "diastolic_blood_pressure": np.round(rng.normal(72, 10, n_rows), 0),
            "triceps_skinfold_thickness": np.round(rng.normal(np.where(positive, 33, 27), 8), 0),
            "serum_insulin": np.round(rng.normal(np.where(positive, 180, 130), 60), 0),
            "bmi": np.round(rng.normal(np.where(positive, 35, 30), 5), 1),
            "diabetes_pedigree_function": np.round(rng.uniform(0.08, 1.5, n_rows), 3),
            "age": rng.integers(21, 70, n_rows),
            "class": codes,
        }
    )

    for col in SENTINEL_COLUMNS:
        df[col] = df[col].clip(lower=1)
        if zero_share:
            zero_rows = rng.random(n_rows) < zero_share
            df.loc[zero_rows, col] = 0

    return df[RAW_COLUMNS]


@pytest.fixture
def raw_frame():
    return make_raw_frame()


@pytest.fixture
def pima_frame(raw_frame):
    """Labelled observation table, before cleaning."""
    measurements = raw_frame.drop(columns="class").astype(float)
    return label_outcome(pd.concat([measurements, raw_frame["class"]], axis=1))


@pytest.fixture
def complete_frame():
    """Labelled observation table with no zero-coded values."""
    raw = make_raw_frame(zero_share=0.0, seed=1)
    measurements = raw.drop(columns="class").astype(float)
    return label_outcome(pd.concat([measurements, raw["class"]], axis=1))


@pytest.fixture
def csv_path(tmp_path, raw_frame):
    path = tmp_path / "pima-indians-diabetes-data.csv"
    raw_frame.to_csv(path, index=False)
    return path
