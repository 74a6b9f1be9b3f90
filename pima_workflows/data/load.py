"""Data loading and validation for the workflow comparison."""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import pandas as pd
import pandera as pa
from pandera import Column, DataFrameSchema

from pima_workflows.config.constants import (
    CLASS_LABELS,
    MEASUREMENT_COLUMNS,
    OUTCOME_COLUMN,
    OUTCOME_LEVELS,
    RAW_CLASS_COLUMN,
    RAW_COLUMNS,
)

logger = logging.getLogger(__name__)


class DataValidationError(ValueError):
    """Raised when an input file is missing or does not match the expected schema."""

    def __init__(self, path, errors: List[str]):
        self.path = Path(path)
        self.errors = list(errors)
        super().__init__(f"{self.path}: " + "; ".join(self.errors))


class DiabetesDataValidator:
    """Validates the raw Pima diabetes table."""

    RAW_COLUMNS = RAW_COLUMNS

    def __init__(self):
        """Initialize validator with schema."""
        measurement_checks = {
            col: Column(float, checks=[pa.Check.ge(0)], coerce=True, nullable=False)
            for col in MEASUREMENT_COLUMNS
        }
        self.schema = DataFrameSchema(
            {
                **measurement_checks,
                RAW_CLASS_COLUMN: Column(
                    str,
                    checks=[pa.Check.isin(list(CLASS_LABELS))],
                    coerce=True,
                    nullable=False,
                ),
            },
            strict=True,
            ordered=True,
        )

    def validate_columns(self, df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Check column count and header names.

        Args:
            df: Raw dataframe as read from disk

        Returns:
            Tuple of (is_valid, error_messages)
        """
        if len(df.columns) != len(self.RAW_COLUMNS):
            return False, [
                f"Expected {len(self.RAW_COLUMNS)} columns, found {len(df.columns)}: "
                f"{list(df.columns)}"
            ]

        errors = []
        for expected, found in zip(self.RAW_COLUMNS, df.columns):
            if expected != found:
                errors.append(f"Column '{found}' found where '{expected}' was expected")
        return not errors, errors

    def validate_schema(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, List[str]]:
        """Validate value types and ranges.

        Checks for:
        - Non-numeric or negative measurements
        - Class codes other than "1" / "0"

        Args:
            df: Raw dataframe with the expected columns

        Returns:
            Tuple of (coerced_dataframe, error_messages). The dataframe is
            None when validation fails.
        """
        try:
            return self.schema.validate(df, lazy=True), []
        except pa.errors.SchemaErrors as e:
            errors = []
            for _, row in e.failure_cases.iterrows():
                errors.append(
                    f"Column '{row['column']}' failed check '{row['check']}' "
                    f"at index {row['index']} (value: {row['failure_case']})"
                )
            return None, errors


def label_outcome(df: pd.DataFrame) -> pd.DataFrame:
    """Rename the class column and map its codes to "Yes" / "No" labels.

    Code "1" maps to "Yes" and "0" to "No"; levels keep that order.
    """
    labelled = df.rename(columns={RAW_CLASS_COLUMN: OUTCOME_COLUMN})
    labelled[OUTCOME_COLUMN] = pd.Categorical(
        labelled[OUTCOME_COLUMN].map(CLASS_LABELS), categories=OUTCOME_LEVELS
    )
    return labelled


def load_data(data_path: Union[str, Path]) -> pd.DataFrame:
    """Load and validate the raw dataset.

    Args:
        data_path: Path to the CSV file

    Returns:
        Observation table with float measurements and an ``is_diabetic``
        outcome column

    Raises:
        FileNotFoundError: If the file does not exist
        DataValidationError: If the file cannot be parsed or fails column or
            schema validation
    """
    data_path = Path(data_path)
    if not data_path.exists():
        raise FileNotFoundError(f"Input data not found: {data_path}")

    try:
        df = pd.read_csv(data_path, dtype={RAW_CLASS_COLUMN: str})
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataValidationError(data_path, [f"Failed to read file: {e}"]) from e

    # rows with one field more than the header get their first field as index
    if not isinstance(df.index, pd.RangeIndex):
        raise DataValidationError(
            data_path, [f"Data rows have more fields than the {len(df.columns)}-column header"]
        )
    if df.empty:
        raise DataValidationError(data_path, ["File has a header but no data rows"])

    df.columns = [c.strip() for c in df.columns]

    validator = DiabetesDataValidator()

    is_valid, errors = validator.validate_columns(df)
    if not is_valid:
        raise DataValidationError(data_path, errors)

    df[RAW_CLASS_COLUMN] = df[RAW_CLASS_COLUMN].str.strip()
    validated, errors = validator.validate_schema(df)
    if errors:
        raise DataValidationError(data_path, errors)

    data = label_outcome(validated)
    logger.info(
        f"Loaded {len(data)} rows from {data_path} "
        f"(positive rate: {(data[OUTCOME_COLUMN] == 'Yes').mean():.3f})"
    )
    return data
