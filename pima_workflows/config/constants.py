"""Shared constants for the diabetes workflow comparison."""

# Measurement columns in file order
MEASUREMENT_COLUMNS = [
    "times_pregnant",
    "plasma_concentration",
    "diastolic_blood_pressure",
    "triceps_skinfold_thickness",
    "serum_insulin",
    "bmi",
    "diabetes_pedigree_function",
    "age",
]

# Class code column as it appears in the raw file
RAW_CLASS_COLUMN = "class"

RAW_COLUMNS = MEASUREMENT_COLUMNS + [RAW_CLASS_COLUMN]

# Outcome column after loading
OUTCOME_COLUMN = "is_diabetic"

# Raw class code -> outcome label. Code "1" is diabetic.
CLASS_LABELS = {"1": "Yes", "0": "No"}

# Level order of the outcome label
OUTCOME_LEVELS = ["Yes", "No"]

POSITIVE_LABEL = "Yes"

# Columns where zero values mean "not recorded" (biological impossibility)
SENTINEL_COLUMNS = [
    "bmi",
    "diastolic_blood_pressure",
    "plasma_concentration",
    "serum_insulin",
    "triceps_skinfold_thickness",
]

# Prefix of the missingness indicator columns added by the imputer recipe
INDICATOR_PREFIX = "na_ind_"

METRIC_NAMES = ["accuracy", "precision", "recall"]

# Fold id used for metrics of the final fit on the held-out test partition
FINAL_FOLD = "final"
