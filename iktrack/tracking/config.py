"""Solver configuration and presets."""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union


PRESETS: Dict[str, Dict[str, Any]] = {
    "default": {
        "description": "Balanced accuracy for routine gait processing",
        "accuracy": 1e-4,
        "assembly_max_iterations": 200,
        "tracking_max_iterations": 50,
        "method": "lm",
    },
    "precise": {
        "description": "Tight tolerance for validation against a reference solution",
        "accuracy": 1e-6,
        "assembly_max_iterations": 500,
        "tracking_max_iterations": 100,
        "method": "lm",
    },
    "fast": {
        "description": "Loose tolerance and small budgets for previews",
        "accuracy": 1e-3,
        "assembly_max_iterations": 100,
        "tracking_max_iterations": 15,
        "method": "lm",
    },
    "scipy": {
        "description": "Delegate each solve to scipy's trust-region reflective method",
        "accuracy": 1e-4,
        "assembly_max_iterations": 400,
        "tracking_max_iterations": 100,
        "method": "trf",
    },
}


@dataclass
class IKSolverConfig:
    """Configuration of an IKSolver.

    Attributes:
        accuracy: Convergence tolerance on the weighted residual norm and on
            the optimizer step norm.
        assembly_max_iterations: Iteration budget of the initial assembly.
        tracking_max_iterations: Iteration budget of every tracking solve.
        method: "lm" (bounded Levenberg-Marquardt) or "trf" (scipy).
        strict: Raise TrackingFailure instead of recording it.
    """

    accuracy: float = 1e-4
    assembly_max_iterations: int = 200
    tracking_max_iterations: int = 50
    method: str = "lm"
    strict: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.accuracy > 0.0:
            raise ValueError(f"accuracy must be positive, got {self.accuracy}")
        if self.assembly_max_iterations < 1:
            raise ValueError(
                f"assembly_max_iterations must be >= 1, got {self.assembly_max_iterations}"
            )
        if self.tracking_max_iterations < 1:
            raise ValueError(
                f"tracking_max_iterations must be >= 1, got {self.tracking_max_iterations}"
            )
        if self.method not in ("lm", "trf"):
            raise ValueError(f"method must be 'lm' or 'trf', got '{self.method}'")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "IKSolverConfig":
        """Build from a mapping; a "description" key is ignored."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in values.items() if k != "description"}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown solver configuration keys: {unknown}")
        return cls(**values)

    @classmethod
    def from_preset(cls, name: str, **overrides: Any) -> "IKSolverConfig":
        if name not in PRESETS:
            raise ValueError(f"Unknown preset '{name}'. Available: {list(PRESETS)}")
        values = dict(PRESETS[name])
        values.update(overrides)
        return cls.from_dict(values)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "IKSolverConfig":
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
