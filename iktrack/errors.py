"""
Error kinds raised or collected by the IK pipeline.

    - MappingFailure:    no data channel matched a model entity (fatal to the caller)
    - AssemblyFailure:   the initial solve missed the accuracy within budget (fatal)
    - TrackingFailure:   a per-frame solve missed the accuracy (recoverable by default)
    - ValidationFailure: a solved column exceeds its RMS threshold (reported, post hoc)

Argument validation problems (shapes, out-of-range times, unit mistakes) are
reported with ValueError / TypeError instead.
"""

from typing import Optional, Sequence


class IKError(RuntimeError):
    """Base class for inverse-kinematics failures."""


class MappingFailure(IKError):
    """Zero channels of a data table matched the model entities."""

    def __init__(
        self,
        what: str,
        entity_names: Sequence[str],
        column_labels: Sequence[str],
    ):
        self.what = what
        self.entity_names = tuple(entity_names)
        self.column_labels = tuple(column_labels)
        preview = ", ".join(self.column_labels[:8])
        if len(self.column_labels) > 8:
            preview += ", ..."
        super().__init__(
            f"No {what} of the model matched any data column "
            f"({len(self.entity_names)} {what}, {len(self.column_labels)} columns: "
            f"[{preview}]). The reference data cannot be used."
        )


class SolveFailure(IKError):
    """A least-squares solve did not reach the requested accuracy."""

    phase = "solve"

    def __init__(
        self,
        time: float,
        accuracy: float,
        iterations: int,
        residual_norm: float,
        message: Optional[str] = None,
    ):
        self.time = float(time)
        self.accuracy = float(accuracy)
        self.iterations = int(iterations)
        self.residual_norm = float(residual_norm)
        text = (
            f"{self.phase.capitalize()} failed at t={self.time:.6f}s: accuracy "
            f"{self.accuracy:g} not reached after {self.iterations} iterations "
            f"(residual norm {self.residual_norm:.3e})"
        )
        if message:
            text += f": {message}"
        super().__init__(text)


class AssemblyFailure(SolveFailure):
    """The initial assembly did not converge; there is no valid starting pose."""

    phase = "assembly"


class TrackingFailure(SolveFailure):
    """A per-frame tracking solve did not converge."""

    phase = "tracking"


class ValidationFailure(IKError):
    """A solved column's RMS error versus a baseline exceeds its threshold."""

    def __init__(self, label: str, rmse: float, threshold: float):
        self.label = label
        self.rmse = float(rmse)
        self.threshold = float(threshold)
        super().__init__(
            f"Column '{label}' has RMSE {self.rmse:.6g}, "
            f"exceeding the threshold {self.threshold:.6g}"
        )
