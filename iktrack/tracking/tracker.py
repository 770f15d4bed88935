"""Run driver: assemble at the first sample, then track every later sample."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from iktrack.errors import TrackingFailure
from iktrack.model.skeleton import PoseState
from iktrack.tables.time_series import NamedTimeSeries
from iktrack.tracking.alignment import TimeSeriesAligner
from iktrack.tracking.reporter import CoordinateReporter
from iktrack.tracking.solver import IKSolver, SolveOutcome

logger = logging.getLogger(__name__)


@dataclass
class TrackingRun:
    """Result of track_time_series().

    Attributes:
        coordinates: Solved coordinate table from the reporter.
        outcomes: One SolveOutcome per frame (assembly first).
        tracking_failures: Failures recorded during this run.
    """

    coordinates: NamedTimeSeries
    outcomes: List[SolveOutcome] = field(default_factory=list)
    tracking_failures: List[TrackingFailure] = field(default_factory=list)

    @property
    def n_frames(self) -> int:
        return len(self.outcomes)

    @property
    def n_failures(self) -> int:
        return len(self.tracking_failures)

    @property
    def success_rate(self) -> float:
        if not self.outcomes:
            return 0.0
        return sum(o.converged for o in self.outcomes) / len(self.outcomes)

    @property
    def total_iterations(self) -> int:
        return int(sum(o.iterations for o in self.outcomes))

    @property
    def max_residual_norm(self) -> float:
        return float(max((o.residual_norm for o in self.outcomes), default=0.0))

    def summary(self) -> str:
        lines = [
            f"Frames solved:      {self.n_frames}",
            f"Converged:          {self.success_rate * 100:.1f}%",
            f"Total iterations:   {self.total_iterations}",
            f"Max residual norm:  {self.max_residual_norm:.3e}",
            f"Tracking failures:  {self.n_failures}",
        ]
        for failure in self.tracking_failures[:10]:
            lines.append(f"  t={failure.time:.4f}s residual={failure.residual_norm:.3e}")
        if self.n_failures > 10:
            lines.append(f"  ... {self.n_failures - 10} more")
        return "\n".join(lines)


def track_time_series(
    solver: IKSolver,
    state: PoseState,
    times: Optional[Sequence[float]] = None,
    reporter: Optional[CoordinateReporter] = None,
    show_progress: bool = False,
) -> TrackingRun:
    """
    Assemble at the first sample time, then track all later sample times.

    Args:
        solver: Configured IKSolver.
        state: Pose state used as the starting guess; updated in place.
        times: Explicit solve times. Defaults to solver.get_times().
        reporter: Sink for solved poses. A new CoordinateReporter by default.
        show_progress: Display a tqdm progress bar.

    Returns:
        TrackingRun with the solved coordinates and per-frame outcomes.

    Raises:
        AssemblyFailure: If the first frame cannot be assembled.
        TrackingFailure: On a tracking failure when the solver is strict.
        ValueError: If explicit times are invalid.
    """
    if times is None:
        sample_times = solver.get_times()
    else:
        sample_times = TimeSeriesAligner(solver.references, times).sample_times
    if reporter is None:
        reporter = CoordinateReporter(solver.model)

    failures_before = len(solver.tracking_failures)
    outcomes: List[SolveOutcome] = []

    state.time = float(sample_times[0])
    outcomes.append(solver.assemble(state))
    reporter.record(state)

    frames = tqdm(
        np.asarray(sample_times[1:]),
        desc="Tracking",
        unit="frame",
        disable=not show_progress,
    )
    for t in frames:
        state.time = float(t)
        outcomes.append(solver.track(state))
        reporter.record(state)

    run = TrackingRun(
        coordinates=reporter.get_table(),
        outcomes=outcomes,
        tracking_failures=solver.tracking_failures[failures_before:],
    )
    logger.info(
        "Tracked %d frames: %d failures, max residual %.3e",
        run.n_frames, run.n_failures, run.max_residual_norm,
    )
    return run
