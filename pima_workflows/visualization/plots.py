"""Exploratory and report plots."""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
import pandas as pd
import seaborn as sns
from sklearn.metrics import confusion_matrix

from pima_workflows.config.constants import (
    MEASUREMENT_COLUMNS,
    OUTCOME_COLUMN,
    OUTCOME_LEVELS,
)

logger = logging.getLogger(__name__)

DISTRIBUTION_TITLE = "Distribution of Eight Health Measurements by Diabetes Status"

RECIPE_MARKERS = {"null": "o", "imputer": "s"}


def to_long(df: pd.DataFrame, group: str = OUTCOME_COLUMN) -> pd.DataFrame:
    """Reshape the measurements into (measurement, value) rows.

    Returns:
        DataFrame with ``group``, ``measurement`` and ``value`` columns and
        eight rows per input row
    """
    return df.melt(
        id_vars=[group],
        value_vars=MEASUREMENT_COLUMNS,
        var_name="measurement",
        value_name="value",
    )


def plot_distributions(
    df: pd.DataFrame,
    output_path: Path,
    group: str = OUTCOME_COLUMN,
    title: str = DISTRIBUTION_TITLE,
) -> None:
    """Plot one histogram per measurement, bars dodged by outcome label.

    Args:
        df: Observation table
        output_path: Path to save plot
        group: Column used to split the bars
        title: Figure title
    """
    long_df = to_long(df, group)
    long_df[group] = long_df[group].astype(str)

    grid = sns.displot(
        data=long_df,
        x="value",
        hue=group,
        hue_order=[level for level in OUTCOME_LEVELS if level in set(long_df[group])],
        col="measurement",
        col_order=MEASUREMENT_COLUMNS,
        col_wrap=4,
        bins=50,
        multiple="dodge",
        height=3,
        facet_kws={"sharex": False, "sharey": False},
    )
    grid.set_axis_labels("Value", "Count")
    grid.set_titles("{col_name}")
    if grid.legend is not None:
        grid.legend.set_title("Diabetic?")
    grid.figure.suptitle(title, fontsize=14, fontweight="bold")
    grid.figure.subplots_adjust(top=0.88)

    grid.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(grid.figure)

    logger.info(f"Distribution plot saved to: {output_path}")


def plot_confusion_matrix(
    y_true, y_pred, output_path: Path, title: str = "Confusion Matrix"
) -> None:
    """Generate confusion matrix visualization.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        output_path: Path to save plot
        title: Plot title
    """
    cm = confusion_matrix(
        pd.Series(y_true).astype(str), pd.Series(y_pred).astype(str), labels=OUTCOME_LEVELS
    )

    fig, ax = plt.subplots(figsize=(6, 5))
    sns.heatmap(
        cm,
        annot=True,
        fmt="d",
        cmap="Blues",
        xticklabels=OUTCOME_LEVELS,
        yticklabels=OUTCOME_LEVELS,
        ax=ax,
    )

    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.set_xlabel("Predicted", fontsize=12)
    ax.set_ylabel("Truth", fontsize=12)

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Confusion matrix saved to: {output_path}")


def plot_workflow_comparison(
    summary: pd.DataFrame, output_path: Path, rank_metric: str = "accuracy"
) -> None:
    """Plot mean cross-validated metrics with standard-error bars.

    Workflows are placed on the x axis by their rank on ``rank_metric``;
    colour marks the model and marker shape the recipe.

    Args:
        summary: Output of ``aggregate_metrics``
        output_path: Path to save plot
        rank_metric: Metric that defines the x-axis order
    """
    metrics = list(dict.fromkeys(summary["metric"]))
    ordered = summary[summary["metric"] == rank_metric].sort_values(
        ["mean", "std_err", "workflow_id"],
        ascending=[False, True, True],
        na_position="last",
    )
    positions = {wf: i + 1 for i, wf in enumerate(ordered["workflow_id"])}

    models = sorted(summary["model"].unique())
    palette = dict(zip(models, sns.color_palette("husl", len(models))))

    fig, axes = plt.subplots(1, len(metrics), figsize=(5 * len(metrics), 4.5), squeeze=False)

    for ax, metric in zip(axes[0], metrics):
        metric_rows = summary[summary["metric"] == metric]
        for _, row in metric_rows.iterrows():
            ax.errorbar(
                positions[row["workflow_id"]],
                row["mean"],
                yerr=0 if pd.isna(row["std_err"]) else row["std_err"],
                fmt=RECIPE_MARKERS.get(row["recipe"], "o"),
                color=palette[row["model"]],
                capsize=3,
                markersize=7,
            )
        ax.set_title(metric, fontsize=12)
        ax.set_xlabel("Workflow Rank", fontsize=11)
        ax.set_ylabel("Mean (± 1 SE)", fontsize=11)
        ax.set_xticks(sorted(positions.values()))
        ax.grid(alpha=0.3)

    model_handles = [
        Line2D([], [], color=palette[m], marker="o", linestyle="", label=m) for m in models
    ]
    recipe_handles = [
        Line2D([], [], color="gray", marker=RECIPE_MARKERS.get(r, "o"), linestyle="", label=r)
        for r in sorted(summary["recipe"].unique())
    ]
    fig.legend(
        handles=model_handles + recipe_handles,
        loc="center left",
        bbox_to_anchor=(1.0, 0.5),
        fontsize=10,
    )
    fig.suptitle("Cross-Validated Workflow Comparison", fontsize=14, fontweight="bold")

    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Workflow comparison plot saved to: {output_path}")
