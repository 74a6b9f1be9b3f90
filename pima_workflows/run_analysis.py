"""End-to-end workflow comparison for the Pima Indians Diabetes dataset."""

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import pandas as pd
import yaml

from pima_workflows.config.settings import load_config
from pima_workflows.data.clean import clean, missing_summary
from pima_workflows.data.load import DataValidationError, load_data
from pima_workflows.data.split import Fold, make_folds, split_train_test
from pima_workflows.models.evaluate import ResampleResults, fit_resamples
from pima_workflows.models.workflows import Workflow, build_workflows
from pima_workflows.reporting.report import (
    FinalFit,
    aggregate_metrics,
    incomplete_workflows,
    last_fit,
    log_to_mlflow,
    rank_workflows,
    select_best,
    write_report,
)
from pima_workflows.visualization.plots import (
    plot_confusion_matrix,
    plot_distributions,
    plot_workflow_comparison,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything produced by one run of the comparison."""

    data: pd.DataFrame
    train: pd.DataFrame
    test: pd.DataFrame
    folds: List[Fold]
    workflows: List[Workflow]
    resamples: ResampleResults
    summary: pd.DataFrame
    ranking: pd.DataFrame
    problems: Dict[str, List[str]]
    best_workflow: str
    final_fit: FinalFit
    artifacts: Dict[str, Path]


def run_analysis(config: dict) -> AnalysisResult:
    """Run the full comparison described by ``config``.

    Args:
        config: Analysis configuration (see ``load_config``)

    Returns:
        AnalysisResult with tables, the final fit and artifact paths
    """
    data_cfg = config["data"]
    seed = data_cfg["random_seed"]
    plots_dir = Path(config["output"]["plots_dir"])
    reports_dir = Path(config["output"]["reports_dir"])
    plots_dir.mkdir(parents=True, exist_ok=True)
    reports_dir.mkdir(parents=True, exist_ok=True)

    artifacts = {}

    data = load_data(Path(data_cfg["raw_path"]))
    logger.info(f"\nZero-coded values before cleaning:\n{missing_summary(data).to_string()}")

    artifacts["exploratory_raw"] = plots_dir / "exploratory-1.png"
    plot_distributions(data, artifacts["exploratory_raw"])

    data = clean(data)
    logger.info(f"\nMissing values after cleaning:\n{missing_summary(data).to_string()}")

    artifacts["exploratory_clean"] = plots_dir / "exploratory-2.png"
    plot_distributions(data, artifacts["exploratory_clean"])

    train, test = split_train_test(data, train_fraction=data_cfg["train_fraction"], seed=seed)
    folds = make_folds(train, n_folds=data_cfg["n_folds"], seed=seed)

    workflows = build_workflows(config["recipes"], config["models"])
    if not workflows:
        raise ValueError("No compatible (recipe, model) pairs configured")

    resamples = fit_resamples(
        workflows, train, folds, seed=seed, n_jobs=config["evaluation"]["n_jobs"]
    )

    rank_metric = config["evaluation"]["rank_metric"]
    summary = aggregate_metrics(resamples, workflows)
    ranking = rank_workflows(summary, metric=rank_metric)
    problems = incomplete_workflows(summary, resamples)

    artifacts["comparison"] = plots_dir / "workflow-comparison.png"
    plot_workflow_comparison(summary, artifacts["comparison"], rank_metric=rank_metric)

    best_id = select_best(ranking)
    best_workflow = next(w for w in workflows if w.workflow_id == best_id)
    logger.info(f"Best workflow by {rank_metric}: {best_id}")

    final_fit = last_fit(best_workflow, train, test, seed=seed)

    cv_predictions = resamples.predictions[resamples.predictions["workflow_id"] == best_id]
    artifacts["confusion_cv"] = plots_dir / "confusion-matrix-cv.png"
    plot_confusion_matrix(
        cv_predictions["truth"],
        cv_predictions["predicted"],
        artifacts["confusion_cv"],
        title=f"{best_id}: Cross-Validation",
    )
    artifacts["confusion_train"] = plots_dir / "confusion-matrix-train.png"
    plot_confusion_matrix(
        final_fit.train_truth,
        final_fit.train_predictions,
        artifacts["confusion_train"],
        title=f"{best_id}: Train",
    )
    artifacts["confusion_test"] = plots_dir / "confusion-matrix-test.png"
    plot_confusion_matrix(
        final_fit.test_truth,
        final_fit.test_predictions,
        artifacts["confusion_test"],
        title=f"{best_id}: Test",
    )

    artifacts.update(
        write_report(reports_dir, summary, ranking, final_fit, problems, rank_metric=rank_metric)
    )

    if config["mlflow"]["enabled"]:
        log_to_mlflow(config, summary, final_fit, artifacts=list(artifacts.values()))

    return AnalysisResult(
        data=data,
        train=train,
        test=test,
        folds=folds,
        workflows=workflows,
        resamples=resamples,
        summary=summary,
        ranking=ranking,
        problems=problems,
        best_workflow=best_id,
        final_fit=final_fit,
        artifacts=artifacts,
    )


def main():
    """CLI entry point for the workflow comparison."""
    parser = argparse.ArgumentParser(description="Compare diabetes classification workflows")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/analysis_config.yaml"),
        help="Config file path",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config: {e}")
        return 1

    log_level = config.get("logging", {}).get("log_level", "INFO")
    logging.getLogger().setLevel(getattr(logging, log_level.upper(), logging.INFO))

    try:
        result = run_analysis(config)
    except (FileNotFoundError, DataValidationError) as e:
        logger.error(f"Input data rejected: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    logger.info(f"Best workflow: {result.best_workflow}")
    if result.problems:
        logger.warning(f"Comparison incomplete for: {sorted(result.problems)}")
    return 0


if __name__ == "__main__":
    exit(main())
