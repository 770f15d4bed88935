"""Evaluation of IK results.

This module provides:
- Error metrics (RMSE, error statistics)
- Column-by-column accuracy evaluation against a baseline solution
- Plots of tracked coordinates and per-column RMSE
"""

from iktrack.eval.accuracy import (
    AccuracyReport,
    ColumnAccuracy,
    evaluate_coordinate_accuracy,
)
from iktrack.eval.metrics import compute_column_rmse, compute_error_stats, compute_rmse
from iktrack.eval.plots import plot_column_rmse, plot_coordinate_tracking, save_figure

__all__ = [
    "compute_rmse",
    "compute_error_stats",
    "compute_column_rmse",
    "AccuracyReport",
    "ColumnAccuracy",
    "evaluate_coordinate_accuracy",
    "plot_coordinate_tracking",
    "plot_column_rmse",
    "save_figure",
]
