"""
Visualization utilities for IK tracking results.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

from iktrack.eval.accuracy import AccuracyReport
from iktrack.tables.time_series import NamedTimeSeries


def plot_coordinate_tracking(
    produced: NamedTimeSeries,
    baseline: Optional[NamedTimeSeries] = None,
    labels: Optional[Sequence[str]] = None,
    title: str = "Coordinate Tracking",
) -> plt.Figure:
    """
    Plot solved coordinates over time, optionally against a baseline.

    Both tables are plotted as given, so pass them in the same units.

    Args:
        produced: Solved coordinate table.
        baseline: Optional baseline table (columns matched by label).
        labels: Columns to plot. Defaults to all produced columns.
        title: Figure title.

    Returns:
        fig: Matplotlib figure
    """
    labels = list(labels) if labels is not None else list(produced.column_labels)
    if not labels:
        raise ValueError("No columns to plot")

    n_cols = min(3, len(labels))
    n_rows = int(np.ceil(len(labels) / n_cols))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(5 * n_cols, 3 * n_rows), squeeze=False)

    for k, label in enumerate(labels):
        ax = axes[k // n_cols][k % n_cols]
        ax.plot(produced.times, produced.get_column(label), color="blue",
                linewidth=1.5, label="IK")
        if baseline is not None and label in baseline.column_labels:
            ax.plot(baseline.times, baseline.get_column(label), color="red",
                    linestyle="--", linewidth=1.2, label="Baseline")
        ax.set_title(label, fontsize=11, fontweight="bold")
        ax.set_xlabel("Time (s)", fontsize=10)
        ax.grid(True, alpha=0.3)
        ax.legend(fontsize=8)

    for k in range(len(labels), n_rows * n_cols):
        axes[k // n_cols][k % n_cols].set_visible(False)

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    return fig


def plot_column_rmse(
    report: AccuracyReport,
    in_degrees: bool = True,
    title: str = "Per-Coordinate RMSE",
) -> plt.Figure:
    """
    Bar chart of per-column RMSE with the threshold line.

    Args:
        report: Result of evaluate_coordinate_accuracy().
        in_degrees: Display values converted from radians to degrees.
        title: Plot title.

    Returns:
        fig: Matplotlib figure
    """
    scale = np.rad2deg(1.0) if in_degrees else 1.0
    labels = [col.label for col in report.columns]
    values = np.array([col.rmse for col in report.columns]) * scale
    colors = ["green" if col.passed else "red" for col in report.columns]

    fig, ax = plt.subplots(figsize=(max(6, 0.6 * len(labels) + 2), 5))
    ax.bar(np.arange(len(labels)), values, color=colors, alpha=0.8)
    ax.axhline(y=report.threshold * scale, color="k", linestyle="--", linewidth=1.0,
               label="Threshold")
    ax.set_xticks(np.arange(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha="right", fontsize=9)
    ax.set_ylabel("RMSE (deg)" if in_degrees else "RMSE", fontsize=11)
    ax.set_title(title, fontsize=12, fontweight="bold")
    ax.legend(fontsize=9)
    ax.grid(True, axis="y", alpha=0.3)

    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("svg", "png"),
) -> List[Path]:
    """
    Save figure in multiple formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
