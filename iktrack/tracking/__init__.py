"""Inverse-kinematics tracking.

This module provides:
- Reference signals for coordinates, markers and body orientations
- Time alignment of references
- The IK solve engine (assembly and tracking)
- Solver configuration, the coordinate reporter and the run driver
- The failure kinds raised or recorded along the way
"""

from iktrack.errors import (
    AssemblyFailure,
    IKError,
    MappingFailure,
    SolveFailure,
    TrackingFailure,
    ValidationFailure,
)
from iktrack.tracking.alignment import TimeSeriesAligner, compute_valid_time_range
from iktrack.tracking.config import PRESETS, IKSolverConfig
from iktrack.tracking.references import (
    CoordinateReference,
    MarkersReference,
    OrientationsReference,
    Reference,
)
from iktrack.tracking.reporter import CoordinateReporter
from iktrack.tracking.solver import IKSolver, SolveOutcome
from iktrack.tracking.tracker import TrackingRun, track_time_series

__all__ = [
    # Errors
    "IKError",
    "MappingFailure",
    "SolveFailure",
    "AssemblyFailure",
    "TrackingFailure",
    "ValidationFailure",
    # References
    "Reference",
    "CoordinateReference",
    "MarkersReference",
    "OrientationsReference",
    # Alignment
    "TimeSeriesAligner",
    "compute_valid_time_range",
    # Solving
    "IKSolverConfig",
    "PRESETS",
    "IKSolver",
    "SolveOutcome",
    "CoordinateReporter",
    "TrackingRun",
    "track_time_series",
]
