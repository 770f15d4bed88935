"""
Error metrics for solved coordinate trajectories.

All functions accept plain arrays; table-aware evaluation lives in
iktrack.eval.accuracy.
"""

from typing import Dict, Optional, Union

import numpy as np


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error values, shape (N, d) or (N,)
        axis: Axis along which to compute RMSE
              None: scalar RMSE across all values
              0: per-column RMSE
              1: per-row RMSE

    Returns:
        rmse: RMSE value(s)
    """
    errors = np.asarray(errors)

    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Compute error statistics.

    Args:
        errors: Error values, shape (N, d) or (N,). Rows of a 2D input are
                reduced to their Euclidean norm first.

    Returns:
        stats: Dictionary with keys:
               - 'mean': Mean absolute error
               - 'median': Median absolute error
               - 'std': Standard deviation
               - 'rmse': Root mean square error
               - 'p95': 95th percentile
               - 'max': Maximum absolute error
    """
    errors = np.asarray(errors)

    if errors.ndim > 1:
        magnitudes = np.linalg.norm(errors, axis=1)
    else:
        magnitudes = np.abs(errors)

    return {
        "mean": float(np.mean(magnitudes)),
        "median": float(np.median(magnitudes)),
        "std": float(np.std(magnitudes)),
        "rmse": float(np.sqrt(np.mean(magnitudes**2))),
        "p95": float(np.percentile(magnitudes, 95)),
        "max": float(np.max(magnitudes)),
    }


def compute_column_rmse(produced: np.ndarray, baseline: np.ndarray) -> np.ndarray:
    """
    Per-column RMSE over the rows where both inputs are finite.

    Args:
        produced: Solved values (N, C).
        baseline: Baseline values (N, C) on the same rows.

    Returns:
        RMSE per column (C,). NaN for a column without any finite pair.
    """
    produced = np.asarray(produced, dtype=np.float64)
    baseline = np.asarray(baseline, dtype=np.float64)
    if produced.shape != baseline.shape:
        raise ValueError(
            f"Shape mismatch: produced {produced.shape} vs baseline {baseline.shape}"
        )
    if produced.ndim == 1:
        produced = produced[:, None]
        baseline = baseline[:, None]

    rmse = np.full(produced.shape[1], np.nan)
    for j in range(produced.shape[1]):
        diff = produced[:, j] - baseline[:, j]
        diff = diff[np.isfinite(diff)]
        if len(diff):
            rmse[j] = compute_rmse(diff)
    return rmse
