"""Aggregation, ranking and reporting of workflow comparison results."""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

import mlflow
import numpy as np
import pandas as pd

from pima_workflows.config.constants import FINAL_FOLD, METRIC_NAMES, OUTCOME_COLUMN
from pima_workflows.models.evaluate import MetricRecord, ResampleResults, compute_metrics
from pima_workflows.models.workflows import FitResult, Workflow

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    "workflow_id",
    "recipe",
    "model",
    "metric",
    "mean",
    "std_err",
    "n",
    "n_missing",
    "complete",
]


@dataclass
class FinalFit:
    """The best workflow refitted on the whole train partition."""

    workflow_id: str
    fit_result: FitResult
    train_predictions: pd.Series
    test_predictions: pd.Series
    train_truth: pd.Series
    test_truth: pd.Series
    metrics: List[MetricRecord]

    def metrics_table(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(m) for m in self.metrics])


def _std_err(values: pd.Series) -> float:
    values = values.dropna()
    if len(values) < 2:
        return np.nan
    return float(values.std(ddof=1) / np.sqrt(len(values)))


def aggregate_metrics(results: ResampleResults, workflows: List[Workflow]) -> pd.DataFrame:
    """Summarise fold metrics per workflow and metric.

    Every evaluated workflow gets one row per metric, including workflows
    whose fits all failed (with ``n == 0``), so incomplete comparisons stay
    visible.

    Args:
        results: Output of ``fit_resamples``
        workflows: The evaluated workflows

    Returns:
        DataFrame with mean, standard error, number of defined values,
        number of missing values and a ``complete`` flag
    """
    rows = []
    for workflow in workflows:
        wf_metrics = results.metrics[results.metrics["workflow_id"] == workflow.workflow_id]
        for metric in METRIC_NAMES:
            values = wf_metrics.loc[wf_metrics["metric"] == metric, "value"].astype(float)
            n = int(values.notna().sum())
            rows.append(
                {
                    "workflow_id": workflow.workflow_id,
                    "recipe": workflow.recipe.value,
                    "model": workflow.model.name,
                    "metric": metric,
                    "mean": float(values.mean()) if n else np.nan,
                    "std_err": _std_err(values),
                    "n": n,
                    "n_missing": results.n_folds - n,
                    "complete": n == results.n_folds,
                }
            )

    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def rank_workflows(summary: pd.DataFrame, metric: str = "accuracy") -> pd.DataFrame:
    """Rank workflows by one metric.

    Order is mean descending, then standard error ascending, then workflow
    id ascending. Workflows with no defined value for the metric rank last.

    Returns:
        Rows of ``summary`` for ``metric`` with a 1-based ``rank`` column
    """
    if metric not in METRIC_NAMES:
        raise ValueError(f"Unknown rank metric '{metric}', expected one of {METRIC_NAMES}")

    ranking = summary[summary["metric"] == metric].sort_values(
        ["mean", "std_err", "workflow_id"],
        ascending=[False, True, True],
        na_position="last",
        kind="mergesort",
    )
    ranking = ranking.reset_index(drop=True)
    ranking.insert(0, "rank", np.arange(1, len(ranking) + 1))
    return ranking


def incomplete_workflows(summary: pd.DataFrame, results: ResampleResults) -> Dict[str, List[str]]:
    """Describe workflows with failed fits or undefined metrics.

    Returns:
        Mapping of workflow id to a list of human-readable problems
    """
    problems: Dict[str, List[str]] = {}

    for failure in results.failures:
        problems.setdefault(failure.workflow_id, []).append(
            f"fit failed on {failure.fold}: {failure.error}"
        )

    failed = {(f.workflow_id, f.fold) for f in results.failures}
    missing = results.metrics[results.metrics["value"].isna()]
    for _, row in missing.iterrows():
        if (row["workflow_id"], row["fold"]) not in failed:
            problems.setdefault(row["workflow_id"], []).append(
                f"{row['metric']} undefined on {row['fold']}"
            )

    incomplete = summary.loc[~summary["complete"], "workflow_id"].unique()
    for workflow_id in incomplete:
        problems.setdefault(workflow_id, [])

    return {k: problems[k] for k in sorted(problems)}


def select_best(ranking: pd.DataFrame) -> str:
    """Return the id of the top-ranked workflow with a defined score."""
    ranked = ranking.dropna(subset=["mean"])
    if ranked.empty:
        raise ValueError("No workflow produced a defined score, nothing to select")
    return ranked.iloc[0]["workflow_id"]


def last_fit(
    workflow: Workflow, train: pd.DataFrame, test: pd.DataFrame, seed: int = 0
) -> FinalFit:
    """Refit a workflow on the full train partition and score the test partition once.

    Args:
        workflow: Workflow to refit
        train: Full train partition
        test: Untouched test partition
        seed: Random seed for the model fit

    Returns:
        FinalFit with predictions and "final" metric records
    """
    fit_result = workflow.fit(train, seed=seed)

    train_predictions = workflow.predict(fit_result, train)
    test_predictions = workflow.predict(fit_result, test)
    train_truth = train[OUTCOME_COLUMN].astype(str)
    test_truth = test[OUTCOME_COLUMN].astype(str)

    test_metrics = compute_metrics(test_truth, test_predictions)
    records = [
        MetricRecord(workflow.workflow_id, name, FINAL_FOLD, value)
        for name, value in test_metrics.items()
    ]

    logger.info(f"Final fit of {workflow.workflow_id} on {len(train)} rows")
    for name, value in test_metrics.items():
        logger.info(f"  test_{name}: {value:.4f}")

    return FinalFit(
        workflow_id=workflow.workflow_id,
        fit_result=fit_result,
        train_predictions=train_predictions,
        test_predictions=test_predictions,
        train_truth=train_truth,
        test_truth=test_truth,
        metrics=records,
    )


def write_report(
    output_dir: Path,
    summary: pd.DataFrame,
    ranking: pd.DataFrame,
    final_fit: FinalFit,
    problems: Dict[str, List[str]],
    rank_metric: str = "accuracy",
) -> Dict[str, Path]:
    """Write comparison tables and a JSON summary.

    Args:
        output_dir: Directory to save report files
        summary: Output of ``aggregate_metrics``
        ranking: Output of ``rank_workflows``
        final_fit: Output of ``last_fit``
        problems: Output of ``incomplete_workflows``
        rank_metric: Metric the ranking is based on

    Returns:
        Mapping of report name to written path
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "cv_metrics": output_dir / "cv_metrics.csv",
        "ranking": output_dir / "ranking.csv",
        "final_metrics": output_dir / "final_metrics.csv",
        "summary": output_dir / "comparison_summary.json",
    }

    summary.to_csv(paths["cv_metrics"], index=False)
    ranking.to_csv(paths["ranking"], index=False)
    final_table = final_fit.metrics_table()
    final_table.to_csv(paths["final_metrics"], index=False)

    logger.info(f"\nWorkflow ranking by {rank_metric}:\n{ranking.to_string(index=False)}")
    logger.info(f"\nFinal test metrics:\n{final_table.to_string(index=False)}")
    if problems:
        logger.warning(f"Incomplete workflows: {sorted(problems)}")

    report = {
        "best_workflow": final_fit.workflow_id,
        "rank_metric": rank_metric,
        "ranking": ranking["workflow_id"].tolist(),
        "test_metrics": {
            m.metric: None if np.isnan(m.value) else float(m.value) for m in final_fit.metrics
        },
        "train_rows": final_fit.fit_result.n_rows,
        "test_rows": len(final_fit.test_truth),
        "incomplete_workflows": problems,
        "report_date": pd.Timestamp.now().isoformat(),
    }

    with open(paths["summary"], "w") as f:
        json.dump(report, f, indent=2)

    logger.info(f"Report saved to: {output_dir}")
    return paths


def log_to_mlflow(
    config: dict,
    summary: pd.DataFrame,
    final_fit: FinalFit,
    artifacts: Optional[List[Path]] = None,
) -> str:
    """Record the comparison in an MLflow run.

    Logs data and evaluation parameters, the best workflow, the mean
    cross-validated score of every workflow on every metric, the final test
    metrics and the report artifacts.

    Args:
        config: Analysis configuration
        summary: Output of ``aggregate_metrics``
        final_fit: Output of ``last_fit``
        artifacts: Files to attach to the run

    Returns:
        MLflow run id
    """
    mlflow.set_tracking_uri(config["mlflow"]["tracking_uri"])
    mlflow.set_experiment(config["mlflow"]["experiment_name"])

    with mlflow.start_run() as run:
        mlflow.log_params(config["data"])
        mlflow.log_params(config["evaluation"])
        mlflow.log_param("best_workflow", final_fit.workflow_id)

        metrics = {}
        for _, row in summary.iterrows():
            if not np.isnan(row["mean"]):
                metrics[f"cv_{row['metric']}_{row['workflow_id']}"] = float(row["mean"])
        for record in final_fit.metrics:
            if not np.isnan(record.value):
                metrics[f"test_{record.metric}"] = float(record.value)
        mlflow.log_metrics(metrics)

        for path in artifacts or []:
            mlflow.log_artifact(str(path))

        run_id = run.info.run_id

    logger.info(f"MLflow run ID: {run_id}")
    return run_id
