"""Estimation algorithms for inverse kinematics.

This module provides bounded nonlinear least-squares solvers:
- Levenberg-Marquardt with box projection
- scipy trust-region reflective delegate
- Finite-difference Jacobians
"""

from iktrack.estimators.bounded_least_squares import (
    BoundedLSResult,
    bounded_levenberg_marquardt,
    numerical_jacobian,
    solve_bounded_ls,
    trust_region_reflective,
)

__all__ = [
    "BoundedLSResult",
    "bounded_levenberg_marquardt",
    "trust_region_reflective",
    "numerical_jacobian",
    "solve_bounded_ls",
]
