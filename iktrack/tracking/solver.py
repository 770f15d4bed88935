"""Inverse-kinematics solve engine.

At a time t the engine minimizes, over the model coordinates q,

    Σ_bodies   w_b ‖log(R_b,targetᵀ R_b(q))‖²
  + Σ_markers  w_m ‖p_m(q) − p_m,target‖²
  + Σ_coords   w_c (q_c − q_c,target)²

subject to the coordinate ranges. Only matched channels with finite
targets at t contribute.

Two phases:
    - assemble(state): full solve at the first frame from whatever pose the
      state holds; failure is fatal (AssemblyFailure).
    - track(state): warm-started solve at each later frame; failure is
      recorded (TrackingFailure) and tracking continues with the best pose.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from iktrack.coords.rotations import rotation_matrix_to_rotvec
from iktrack.errors import AssemblyFailure, SolveFailure, TrackingFailure
from iktrack.estimators.bounded_least_squares import BoundedLSResult, solve_bounded_ls
from iktrack.model.skeleton import PoseState, SkeletonModel
from iktrack.tracking.alignment import TimeSeriesAligner
from iktrack.tracking.config import IKSolverConfig
from iktrack.tracking.references import (
    CoordinateReference,
    MarkersReference,
    OrientationsReference,
    Reference,
)

logger = logging.getLogger(__name__)


@dataclass
class SolveOutcome:
    """Result of one assemble() or track() call.

    Attributes:
        phase: "assembly" or "tracking".
        time: Time solved at.
        converged: Whether the accuracy was reached within the budget.
        iterations: Optimizer iterations used.
        residual_norm: Final weighted residual norm.
        failure: The recorded failure when not converged.
    """

    phase: str
    time: float
    converged: bool
    iterations: int
    residual_norm: float
    failure: Optional[SolveFailure] = None


@dataclass
class _FrameTargets:
    body_indices: np.ndarray
    body_rotations: np.ndarray
    body_sqrt_weights: np.ndarray
    marker_indices: np.ndarray
    marker_positions: np.ndarray
    marker_sqrt_weights: np.ndarray
    coordinate_indices: np.ndarray
    coordinate_values: np.ndarray
    coordinate_sqrt_weights: np.ndarray

    @property
    def num_channels(self) -> int:
        return len(self.body_indices) + len(self.marker_indices) + len(self.coordinate_indices)


def _empty_targets(shape: Tuple[int, ...]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    return np.zeros(0, dtype=np.int64), np.zeros((0,) + shape), np.zeros(0)


class IKSolver:
    """Assembles and tracks a model against reference signals.

    Args:
        model: Skeletal model shared by all references.
        markers_reference: Optional marker position targets.
        orientations_reference: Optional body orientation targets.
        coordinate_references: Zero or more direct coordinate targets.
        config: Solver configuration (defaults to IKSolverConfig()).

    Raises:
        ValueError: If no reference is given, a reference was built for a
            different model, or the references' time ranges do not overlap.

    Example:
        >>> model = build_gait_model()
        >>> oref = OrientationsReference(model, orientation_table)
        >>> solver = IKSolver(model, orientations_reference=oref)
        >>> state = model.init_state(time=solver.get_times()[0])
        >>> solver.assemble(state).converged
        True
    """

    def __init__(
        self,
        model: SkeletonModel,
        markers_reference: Optional[MarkersReference] = None,
        orientations_reference: Optional[OrientationsReference] = None,
        coordinate_references: Sequence[CoordinateReference] = (),
        config: Optional[IKSolverConfig] = None,
    ):
        self._model = model
        self._markers_reference = markers_reference
        self._orientations_reference = orientations_reference
        self._coordinate_references = list(coordinate_references)
        self._config = config if config is not None else IKSolverConfig()

        if not self.references:
            raise ValueError("IKSolver needs at least one reference signal")
        for ref in self.references:
            if ref.model is not model:
                raise ValueError(f"{type(ref).__name__} was built for a different model")

        self._aligner = TimeSeriesAligner(self.references)
        self._accuracy = self._config.accuracy
        self._assembly_max_iterations = self._config.assembly_max_iterations
        self._tracking_max_iterations = self._config.tracking_max_iterations
        self._lower = model.lower_bounds
        self._upper = model.upper_bounds

        self._assembled = False
        self._last_time: Optional[float] = None
        self.tracking_failures: List[TrackingFailure] = []

    # ------------------------------------------------------------------
    # Configuration and queries
    # ------------------------------------------------------------------

    @property
    def model(self) -> SkeletonModel:
        return self._model

    @property
    def config(self) -> IKSolverConfig:
        return self._config

    @property
    def markers_reference(self) -> Optional[MarkersReference]:
        return self._markers_reference

    @property
    def orientations_reference(self) -> Optional[OrientationsReference]:
        return self._orientations_reference

    @property
    def coordinate_references(self) -> List[CoordinateReference]:
        return list(self._coordinate_references)

    @property
    def references(self) -> List[Reference]:
        refs: List[Reference] = []
        if self._orientations_reference is not None:
            refs.append(self._orientations_reference)
        if self._markers_reference is not None:
            refs.append(self._markers_reference)
        refs.extend(self._coordinate_references)
        return refs

    @property
    def accuracy(self) -> float:
        return self._accuracy

    @property
    def is_assembled(self) -> bool:
        return self._assembled

    def set_accuracy(self, accuracy: float) -> None:
        if not accuracy > 0.0:
            raise ValueError(f"accuracy must be positive, got {accuracy}")
        self._accuracy = float(accuracy)

    def set_max_iterations(self, tracking: int, assembly: Optional[int] = None) -> None:
        """Set the tracking (and optionally the assembly) iteration budget."""
        if tracking < 1 or (assembly is not None and assembly < 1):
            raise ValueError("Iteration budgets must be >= 1")
        self._tracking_max_iterations = int(tracking)
        if assembly is not None:
            self._assembly_max_iterations = int(assembly)

    def get_valid_time_range(self) -> Tuple[float, float]:
        return self._aligner.valid_time_range

    def get_times(self) -> np.ndarray:
        """Sample times of the authoritative reference inside the valid range."""
        return self._aligner.sample_times

    # ------------------------------------------------------------------
    # Objective
    # ------------------------------------------------------------------

    def _check_time(self, time: float) -> None:
        start, end = self.get_valid_time_range()
        if not all(ref.contains_time(time) for ref in self.references):
            raise ValueError(f"Time {time} is outside the valid time range [{start}, {end}]")

    def _targets_at(self, time: float) -> _FrameTargets:
        if self._orientations_reference is not None:
            b_idx, b_rot, b_w = self._orientations_reference.targets_at(time)
        else:
            b_idx, b_rot, b_w = _empty_targets((3, 3))

        if self._markers_reference is not None:
            m_idx, m_pos, m_w = self._markers_reference.targets_at(time)
        else:
            m_idx, m_pos, m_w = _empty_targets((3,))

        c_idx, c_val, c_w = _empty_targets(())
        for ref in self._coordinate_references:
            idx, val, w = ref.targets_at(time)
            c_idx = np.concatenate([c_idx, idx])
            c_val = np.concatenate([c_val, val])
            c_w = np.concatenate([c_w, w])

        return _FrameTargets(
            body_indices=b_idx,
            body_rotations=b_rot,
            body_sqrt_weights=np.sqrt(b_w),
            marker_indices=m_idx,
            marker_positions=m_pos,
            marker_sqrt_weights=np.sqrt(m_w),
            coordinate_indices=c_idx,
            coordinate_values=c_val,
            coordinate_sqrt_weights=np.sqrt(c_w),
        )

    def _residual_function(self, targets: _FrameTargets) -> Callable[[np.ndarray], np.ndarray]:
        model = self._model
        needs_kinematics = len(targets.body_indices) > 0 or len(targets.marker_indices) > 0

        def residual(q: np.ndarray) -> np.ndarray:
            parts = []
            if needs_kinematics:
                rotations, positions = model.compute_body_transforms(q)
                for k, body in enumerate(targets.body_indices):
                    error = targets.body_rotations[k].T @ rotations[body]
                    parts.append(targets.body_sqrt_weights[k] * rotation_matrix_to_rotvec(error))
                if len(targets.marker_indices):
                    predicted = model.compute_marker_positions(q, (rotations, positions))
                    diff = predicted[targets.marker_indices] - targets.marker_positions
                    parts.append((diff * targets.marker_sqrt_weights[:, None]).ravel())
            if len(targets.coordinate_indices):
                diff = q[targets.coordinate_indices] - targets.coordinate_values
                parts.append(diff * targets.coordinate_sqrt_weights)
            if not parts:
                return np.zeros(0)
            return np.concatenate(parts)

        return residual

    def _minimize(self, state: PoseState, max_iterations: int) -> BoundedLSResult:
        targets = self._targets_at(state.time)
        if targets.num_channels == 0:
            logger.warning("No finite targets at t=%.6f; keeping the current pose", state.time)
        return solve_bounded_ls(
            self._residual_function(targets),
            state.coordinate_values,
            lower=self._lower,
            upper=self._upper,
            method=self._config.method,
            max_iter=max_iterations,
            tol=self._accuracy,
        )

    def _apply(self, state: PoseState, result: BoundedLSResult) -> None:
        state.set_coordinate_values(result.x)
        self._model.realize_position(state)

    # ------------------------------------------------------------------
    # Solve phases
    # ------------------------------------------------------------------

    def assemble(self, state: PoseState) -> SolveOutcome:
        """
        Solve the full problem at state.time from the state's current pose.

        Args:
            state: Pose state whose time lies in the valid time range. Updated
                in place and realized on success.

        Returns:
            SolveOutcome of phase "assembly".

        Raises:
            ValueError: If state.time is outside the valid time range.
            AssemblyFailure: If the accuracy is not reached within the
                assembly iteration budget. The state is left unchanged.
        """
        time = state.time
        self._check_time(time)

        result = self._minimize(state, self._assembly_max_iterations)
        if not result.converged:
            self._assembled = False
            raise AssemblyFailure(
                time=time,
                accuracy=self._accuracy,
                iterations=result.iterations,
                residual_norm=result.residual_norm,
            )

        self._apply(state, result)
        self._assembled = True
        self._last_time = time
        logger.info(
            "Assembled at t=%.4f in %d iterations (residual %.3e, %s)",
            time, result.iterations, result.residual_norm, result.status,
        )
        return SolveOutcome(
            phase="assembly",
            time=time,
            converged=True,
            iterations=result.iterations,
            residual_norm=result.residual_norm,
        )

    def track(self, state: PoseState) -> SolveOutcome:
        """
        Solve at state.time warm-started from the state's current pose.

        Args:
            state: Pose state after a successful assemble(); its time must be
                in the valid range and not earlier than the last solved time.

        Returns:
            SolveOutcome of phase "tracking". A non-converged outcome carries
            the TrackingFailure; the state holds the best pose found.

        Raises:
            RuntimeError: If assemble() has not succeeded first.
            ValueError: If the time is out of range or moves backwards.
            TrackingFailure: On non-convergence, in strict mode only.
        """
        if not self._assembled:
            raise RuntimeError("track() requires a successful assemble() first")
        time = state.time
        self._check_time(time)
        if time < self._last_time:
            raise ValueError(
                f"Tracking time must be non-decreasing: {time} < last solved {self._last_time}"
            )

        result = self._minimize(state, self._tracking_max_iterations)
        self._apply(state, result)
        self._last_time = time

        failure = None
        if not result.converged:
            failure = TrackingFailure(
                time=time,
                accuracy=self._accuracy,
                iterations=result.iterations,
                residual_norm=result.residual_norm,
            )
            self.tracking_failures.append(failure)
            logger.warning("%s", failure)
            if self._config.strict:
                raise failure
        else:
            logger.debug(
                "Tracked t=%.4f in %d iterations (residual %.3e)",
                time, result.iterations, result.residual_norm,
            )

        return SolveOutcome(
            phase="tracking",
            time=time,
            converged=result.converged,
            iterations=result.iterations,
            residual_norm=result.residual_norm,
            failure=failure,
        )

    # ------------------------------------------------------------------
    # Per-channel errors
    # ------------------------------------------------------------------

    def compute_orientation_errors(self, state: PoseState) -> Dict[str, float]:
        """Angular error (radians) per body with a finite target at state.time."""
        if self._orientations_reference is None:
            return {}
        self._check_time(state.time)
        indices, targets, _ = self._orientations_reference.targets_at(state.time)
        rotations, _ = self._model.compute_body_transforms(state.coordinate_values)
        names = self._model.body_names
        return {
            names[body]: float(np.linalg.norm(
                rotation_matrix_to_rotvec(targets[k].T @ rotations[body])))
            for k, body in enumerate(indices)
        }

    def compute_marker_errors(self, state: PoseState) -> Dict[str, float]:
        """Distance (metres) per marker with a finite target at state.time."""
        if self._markers_reference is None:
            return {}
        self._check_time(state.time)
        indices, targets, _ = self._markers_reference.targets_at(state.time)
        predicted = self._model.compute_marker_positions(state.coordinate_values)
        names = self._model.marker_names
        return {
            names[marker]: float(np.linalg.norm(predicted[marker] - targets[k]))
            for k, marker in enumerate(indices)
        }

    def compute_coordinate_errors(self, state: PoseState) -> Dict[str, float]:
        """Signed error per coordinate target at state.time (last reference wins)."""
        self._check_time(state.time)
        q = state.coordinate_values
        names = self._model.coordinate_names
        errors = {}
        for ref in self._coordinate_references:
            indices, targets, _ = ref.targets_at(state.time)
            for k, coord in enumerate(indices):
                errors[names[coord]] = float(q[coord] - targets[k])
        return errors
