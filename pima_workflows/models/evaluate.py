"""Cross-validated evaluation of workflows."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.metrics import accuracy_score, precision_score, recall_score

from pima_workflows.config.constants import METRIC_NAMES, OUTCOME_COLUMN, POSITIVE_LABEL
from pima_workflows.data.split import Fold
from pima_workflows.models.workflows import Workflow

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ["workflow_id", "metric", "fold", "value"]
PREDICTION_COLUMNS = ["workflow_id", "fold", "row", "truth", "predicted"]


@dataclass(frozen=True)
class MetricRecord:
    """One metric value for one workflow on one fold (or the final fit)."""

    workflow_id: str
    metric: str
    fold: str
    value: float


@dataclass(frozen=True)
class FitFailure:
    """A (workflow, fold) fit or prediction that raised."""

    workflow_id: str
    fold: str
    error: str


@dataclass
class ResampleResults:
    """Collected output of cross-validating a set of workflows.

    Attributes:
        metrics: Long table with one row per (workflow, fold, metric)
        predictions: Held-out predictions with their true labels
        failures: Fits that raised, one entry per (workflow, fold)
        workflow_ids: Ids of every workflow that was evaluated
        n_folds: Number of folds each workflow was evaluated on
    """

    metrics: pd.DataFrame
    predictions: pd.DataFrame
    failures: List[FitFailure] = field(default_factory=list)
    workflow_ids: List[str] = field(default_factory=list)
    n_folds: int = 0

    def failures_for(self, workflow_id: str) -> List[FitFailure]:
        return [f for f in self.failures if f.workflow_id == workflow_id]


def compute_metrics(y_true, y_pred, pos_label: str = POSITIVE_LABEL) -> Dict[str, float]:
    """Compute accuracy, precision and recall for one set of predictions.

    Precision and recall are NaN when undefined, e.g. when a fold has no
    positive cases or the model predicts none.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        pos_label: Label treated as the positive class

    Returns:
        Dictionary of metrics
    """
    y_true = np.asarray(y_true, dtype=object)
    y_pred = np.asarray(y_pred, dtype=object)
    labels_present = set(y_true) | set(y_pred)

    scorers = {
        "accuracy": lambda: accuracy_score(y_true, y_pred),
        "precision": lambda: precision_score(
            y_true, y_pred, pos_label=pos_label, zero_division=np.nan
        ),
        "recall": lambda: recall_score(
            y_true, y_pred, pos_label=pos_label, zero_division=np.nan
        ),
    }

    metrics = {}
    for name in METRIC_NAMES:
        if len(y_true) == 0:
            metrics[name] = np.nan
            continue
        if name != "accuracy" and pos_label not in labels_present:
            metrics[name] = np.nan
            continue
        try:
            metrics[name] = float(scorers[name]())
        except ValueError as e:
            logger.warning(f"Could not compute {name}: {e}")
            metrics[name] = np.nan

    return metrics


def evaluate_fold(
    workflow: Workflow, train: pd.DataFrame, fold: Fold, seed: int = 0
) -> Tuple[List[MetricRecord], Optional[pd.DataFrame], Optional[FitFailure]]:
    """Fit a workflow on a fold's analysis rows and score its assessment rows.

    Exceptions raised while fitting or predicting are returned as a
    ``FitFailure`` instead of propagating, so one broken workflow does not
    stop the comparison.

    Returns:
        Tuple of (metric_records, predictions, failure)
    """
    analysis = train.iloc[fold.analysis]
    assessment = train.iloc[fold.assessment]

    try:
        fit_result = workflow.fit(analysis, seed=seed)
        predicted = workflow.predict(fit_result, assessment)
    except Exception as e:
        logger.warning(f"{workflow.workflow_id} failed on {fold.fold_id}: {e}")
        return [], None, FitFailure(workflow.workflow_id, fold.fold_id, f"{type(e).__name__}: {e}")

    truth = assessment[OUTCOME_COLUMN].astype(str)
    metrics = compute_metrics(truth, predicted)

    undefined = [name for name, value in metrics.items() if np.isnan(value)]
    if undefined:
        logger.warning(f"{workflow.workflow_id} on {fold.fold_id}: undefined {undefined}")

    records = [
        MetricRecord(workflow.workflow_id, name, fold.fold_id, value)
        for name, value in metrics.items()
    ]
    predictions = pd.DataFrame(
        {
            "workflow_id": workflow.workflow_id,
            "fold": fold.fold_id,
            "row": assessment.index,
            "truth": truth.to_numpy(),
            "predicted": predicted.to_numpy(),
        }
    )
    return records, predictions, None


def fit_resamples(
    workflows: List[Workflow],
    train: pd.DataFrame,
    folds: List[Fold],
    seed: int = 0,
    n_jobs: int = 1,
) -> ResampleResults:
    """Cross-validate every workflow on every fold.

    Args:
        workflows: Workflows to evaluate
        train: Train partition
        folds: Fold assignment over ``train``
        seed: Random seed passed to every model fit
        n_jobs: Number of joblib workers for (workflow, fold) tasks

    Returns:
        ResampleResults sorted by workflow, fold and metric
    """
    logger.info(
        f"Evaluating {len(workflows)} workflows on {len(folds)} folds (n_jobs={n_jobs})"
    )

    outputs = Parallel(n_jobs=n_jobs)(
        delayed(evaluate_fold)(workflow, train, fold, seed)
        for workflow in workflows
        for fold in folds
    )

    records = []
    prediction_frames = []
    failures = []
    for fold_records, predictions, failure in outputs:
        records.extend(fold_records)
        if predictions is not None:
            prediction_frames.append(predictions)
        if failure is not None:
            failures.append(failure)

    metrics = pd.DataFrame([asdict(r) for r in records], columns=METRIC_COLUMNS)
    metrics = metrics.sort_values(["workflow_id", "fold", "metric"]).reset_index(drop=True)

    if prediction_frames:
        predictions = pd.concat(prediction_frames, ignore_index=True)
        predictions = predictions.sort_values(["workflow_id", "fold", "row"]).reset_index(
            drop=True
        )
    else:
        predictions = pd.DataFrame(columns=PREDICTION_COLUMNS)

    failures.sort(key=lambda f: (f.workflow_id, f.fold))
    if failures:
        failed = [(f.workflow_id, f.fold) for f in failures]
        logger.warning(f"{len(failures)} fits failed: {failed}")

    return ResampleResults(
        metrics=metrics,
        predictions=predictions,
        failures=failures,
        workflow_ids=[w.workflow_id for w in workflows],
        n_folds=len(folds),
    )
