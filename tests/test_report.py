"""Tests for aggregation, ranking and reporting."""

import json

import numpy as np
import pandas as pd
import pytest
from sklearn.base import BaseEstimator, ClassifierMixin

from pima_workflows.data.clean import clean
from pima_workflows.data.split import make_folds, split_train_test
from pima_workflows.features.recipes import RecipeKind
from pima_workflows.models.evaluate import FitFailure, ResampleResults, fit_resamples
from pima_workflows.models.registry import ModelSpec, get_model_spec
from pima_workflows.models.workflows import Workflow, build_workflows
from pima_workflows.reporting import report
from pima_workflows.reporting.report import (
    aggregate_metrics,
    incomplete_workflows,
    last_fit,
    log_to_mlflow,
    rank_workflows,
    select_best,
    write_report,
)


class AlwaysNoClassifier(ClassifierMixin, BaseEstimator):
    """Classifier that never predicts the positive class."""

    def fit(self, X, y):
        self.classes_ = np.unique(np.asarray(y, dtype=object))
        return self

    def predict(self, X):
        return np.full(len(X), "No", dtype=object)


def _always_no(seed):
    return AlwaysNoClassifier()


ALWAYS_NO_SPEC = ModelSpec("always_no", "test", True, _always_no)


def _summary_rows(rows):
    """Build an accuracy summary from (workflow_id, mean, std_err) tuples."""
    return pd.DataFrame(
        [
            {
                "workflow_id": wf,
                "recipe": wf.split("_", 1)[0],
                "model": wf.split("_", 1)[1],
                "metric": "accuracy",
                "mean": mean,
                "std_err": se,
                "n": 10,
                "n_missing": 0,
                "complete": True,
            }
            for wf, mean, se in rows
        ]
    )


@pytest.fixture
def split_data(pima_frame):
    return split_train_test(clean(pima_frame), seed=0)


@pytest.fixture
def comparison(split_data):
    train, _ = split_data
    folds = make_folds(train, n_folds=3, seed=0)
    workflows = build_workflows(["null", "imputer"], ["decision_tree", "svm_linear"])
    results = fit_resamples(workflows, train, folds, seed=0)
    return workflows, results


class TestAggregateMetrics:
    """Test per-workflow summaries."""

    def test_mean_and_standard_error(self, comparison):
        """Test that mean and standard error match the fold values."""
        workflows, results = comparison
        summary = aggregate_metrics(results, workflows)

        values = results.metrics[
            (results.metrics["workflow_id"] == "null_decision_tree")
            & (results.metrics["metric"] == "accuracy")
        ]["value"]
        row = summary[
            (summary["workflow_id"] == "null_decision_tree") & (summary["metric"] == "accuracy")
        ].iloc[0]

        assert row["mean"] == pytest.approx(values.mean())
        assert row["std_err"] == pytest.approx(values.std(ddof=1) / np.sqrt(3))
        assert row["n"] == 3
        assert bool(row["complete"])
        assert len(summary) == len(workflows) * 3

    def test_failed_workflow_kept_and_flagged(self):
        """Test that a workflow with no successful folds still appears."""
        workflow = Workflow(RecipeKind.NULL, get_model_spec("decision_tree"))
        results = ResampleResults(
            metrics=pd.DataFrame(columns=["workflow_id", "metric", "fold", "value"]),
            predictions=pd.DataFrame(),
            failures=[FitFailure("null_decision_tree", "Fold01", "RuntimeError: boom")],
            workflow_ids=["null_decision_tree"],
            n_folds=1,
        )

        summary = aggregate_metrics(results, [workflow])
        problems = incomplete_workflows(summary, results)

        assert (summary["n"] == 0).all()
        assert not summary["complete"].any()
        assert problems == {"null_decision_tree": ["fit failed on Fold01: RuntimeError: boom"]}

    def test_undefined_precision_flagged(self, split_data):
        """Test that a workflow that never predicts "Yes" is reported as incomplete."""
        train, _ = split_data
        folds = make_folds(train, n_folds=3, seed=0)
        workflow = Workflow(RecipeKind.NULL, ALWAYS_NO_SPEC)

        results = fit_resamples([workflow], train, folds, seed=0)
        summary = aggregate_metrics(results, [workflow])
        problems = incomplete_workflows(summary, results)

        precision = summary[summary["metric"] == "precision"].iloc[0]
        accuracy = summary[summary["metric"] == "accuracy"].iloc[0]
        assert precision["n"] == 0
        assert precision["n_missing"] == 3
        assert not bool(precision["complete"])
        assert bool(accuracy["complete"])
        assert results.failures == []
        assert problems == {
            "null_always_no": [f"precision undefined on {f.fold_id}" for f in folds]
        }


class TestRankWorkflows:
    """Test deterministic ranking."""

    def test_ranked_by_mean_descending(self):
        summary = _summary_rows(
            [("null_a", 0.70, 0.01), ("null_b", 0.75, 0.02), ("null_c", 0.72, 0.01)]
        )
        ranking = rank_workflows(summary)

        assert ranking["workflow_id"].tolist() == ["null_b", "null_c", "null_a"]
        assert ranking["rank"].tolist() == [1, 2, 3]

    def test_ties_broken_by_std_err_then_id(self):
        summary = _summary_rows(
            [("null_b", 0.75, 0.02), ("imputer_b", 0.75, 0.02), ("null_a", 0.75, 0.01)]
        )
        ranking = rank_workflows(summary)

        assert ranking["workflow_id"].tolist() == ["null_a", "imputer_b", "null_b"]

    def test_undefined_scores_rank_last(self):
        summary = _summary_rows([("null_a", np.nan, np.nan), ("null_b", 0.6, 0.01)])
        ranking = rank_workflows(summary)

        assert ranking["workflow_id"].tolist() == ["null_b", "null_a"]
        assert select_best(ranking) == "null_b"

    def test_no_defined_scores_rejected(self):
        ranking = rank_workflows(_summary_rows([("null_a", np.nan, np.nan)]))
        with pytest.raises(ValueError):
            select_best(ranking)

    def test_unknown_metric_rejected(self):
        with pytest.raises(ValueError, match="roc_auc"):
            rank_workflows(_summary_rows([("null_a", 0.5, 0.1)]), metric="roc_auc")


class TestLastFit:
    """Test the final fit on the full train partition."""

    def test_final_metrics_on_test_partition(self, split_data):
        train, test = split_data
        workflow = Workflow(RecipeKind.IMPUTER, get_model_spec("logistic_reg"))

        final = last_fit(workflow, train, test, seed=0)

        assert final.fit_result.n_rows == len(train)
        assert len(final.test_predictions) == len(test)
        assert len(final.train_predictions) == len(train)
        assert {m.fold for m in final.metrics} == {"final"}
        assert [m.metric for m in final.metrics] == ["accuracy", "precision", "recall"]
        accuracy = (final.test_predictions == final.test_truth).mean()
        assert final.metrics[0].value == pytest.approx(accuracy)


class TestWriteReport:
    """Test report files."""

    def test_files_written(self, tmp_path, split_data, comparison):
        train, test = split_data
        workflows, results = comparison
        summary = aggregate_metrics(results, workflows)
        ranking = rank_workflows(summary)
        best = next(w for w in workflows if w.workflow_id == select_best(ranking))
        final = last_fit(best, train, test, seed=0)

        paths = write_report(tmp_path / "reports", summary, ranking, final, {})

        assert all(p.exists() for p in paths.values())
        with open(paths["summary"]) as f:
            saved = json.load(f)
        assert saved["best_workflow"] == best.workflow_id
        assert saved["ranking"] == ranking["workflow_id"].tolist()
        assert set(saved["test_metrics"]) == {"accuracy", "precision", "recall"}
        assert len(pd.read_csv(paths["cv_metrics"])) == len(summary)


class _FakeRun:
    class info:
        run_id = "run-123"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class TestLogToMlflow:
    """Test MLflow tracking with the client patched out."""

    def test_logs_params_metrics_and_artifacts(self, monkeypatch, tmp_path, split_data, comparison):
        train, test = split_data
        workflows, results = comparison
        summary = aggregate_metrics(results, workflows)
        final = last_fit(workflows[0], train, test, seed=0)

        calls = {"params": {}, "metrics": {}, "artifacts": []}
        monkeypatch.setattr(report.mlflow, "set_tracking_uri", lambda uri: None)
        monkeypatch.setattr(report.mlflow, "set_experiment", lambda name: None)
        monkeypatch.setattr(report.mlflow, "start_run", lambda: _FakeRun())
        monkeypatch.setattr(report.mlflow, "log_params", lambda p: calls["params"].update(p))
        monkeypatch.setattr(
            report.mlflow, "log_param", lambda k, v: calls["params"].update({k: v})
        )
        monkeypatch.setattr(report.mlflow, "log_metrics", lambda m: calls["metrics"].update(m))
        monkeypatch.setattr(report.mlflow, "log_artifact", calls["artifacts"].append)

        config = {
            "data": {"random_seed": 0, "n_folds": 3},
            "evaluation": {"rank_metric": "accuracy", "n_jobs": 1},
            "mlflow": {"tracking_uri": str(tmp_path), "experiment_name": "test"},
        }
        artifact = tmp_path / "plot.png"
        artifact.write_bytes(b"")

        run_id = log_to_mlflow(config, summary, final, artifacts=[artifact])

        assert run_id == "run-123"
        assert calls["params"]["best_workflow"] == final.workflow_id
        assert "test_accuracy" in calls["metrics"]
        for workflow in workflows:
            assert f"cv_accuracy_{workflow.workflow_id}" in calls["metrics"]
        defined = summary.dropna(subset=["mean"])
        expected = {f"cv_{r.metric}_{r.workflow_id}" for r in defined.itertuples()}
        assert expected <= set(calls["metrics"])
        assert any(key.startswith("cv_recall_") for key in calls["metrics"])
        assert calls["artifacts"] == [str(artifact)]
