"""Named time series tables.

This module defines the in-memory table type that carries experimental and
solved data through the IK pipeline: an ordered sequence of (time, row) pairs
where every row holds one value per labelled column.

Supported value kinds (one per table):
    - scalar:     data shape (N, C)         e.g. joint angles
    - vec3:       data shape (N, C, 3)      e.g. marker positions, Euler angles
    - quaternion: data shape (N, C, 4)      e.g. IMU orientations [w, x, y, z]
    - rotation:   data shape (N, C, 3, 3)   e.g. body orientations

Metadata keys understood by the package:
    - "data_rate": nominal sampling rate in Hz
    - "units": "radians", "degrees", "m", ...
    - "in_degrees": bool flag for angle tables
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np


# Trailing element shape for each value kind
VALUE_KINDS: Dict[str, Tuple[int, ...]] = {
    "scalar": (),
    "vec3": (3,),
    "quaternion": (4,),
    "rotation": (3, 3),
}

DEGREE_UNITS = ("degrees", "degree", "deg")


def compute_sampling_rate(times: np.ndarray) -> float:
    """
    Compute the sampling rate of a time vector.

    rate = (N - 1) / (t_last - t_first)

    Args:
        times: Strictly increasing sample times (N,), N >= 2.

    Returns:
        Sampling rate in Hz.

    Raises:
        ValueError: If fewer than two samples are given or the span is zero.
    """
    times = np.asarray(times, dtype=np.float64)
    if times.ndim != 1 or len(times) < 2:
        raise ValueError("Sampling rate requires at least two samples")
    span = times[-1] - times[0]
    if span <= 0.0:
        raise ValueError(f"Time span must be positive, got {span}")
    return float((len(times) - 1) / span)


def _infer_value_kind(data: np.ndarray) -> str:
    trailing = data.shape[2:]
    for kind, shape in VALUE_KINDS.items():
        if trailing == shape:
            return kind
    raise ValueError(
        f"Unsupported data shape {data.shape}; expected (N, C), (N, C, 3), "
        f"(N, C, 4) or (N, C, 3, 3)"
    )


@dataclass(eq=False)
class NamedTimeSeries:
    """Column-labelled, time-indexed table.

    Times must be strictly increasing and column labels unique. The arrays are
    copied and marked read-only on construction; a table may be shared by
    several readers.

    Attributes:
        times: Sample times in seconds, shape (N,).
        data: Values, shape (N, C) + element shape of the value kind.
        column_labels: Column labels (C,).
        metadata: Free-form table metadata (data_rate, units, ...).

    Example:
        >>> table = NamedTimeSeries(
        ...     times=np.array([0.0, 0.01, 0.02]),
        ...     data=np.array([[0.0, 0.0], [10.0, 0.1], [20.0, 0.2]]),
        ...     column_labels=("hip_flexion", "pelvis_tx"),
        ...     metadata={"units": "degrees"},
        ... )
        >>> table.value_kind
        'scalar'
    """

    times: np.ndarray
    data: np.ndarray
    column_labels: Tuple[str, ...]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate and freeze the table contents."""
        times = np.array(self.times, dtype=np.float64)
        data = np.array(self.data, dtype=np.float64)
        labels = tuple(self.column_labels)

        if times.ndim != 1:
            raise ValueError(f"times must be 1D, got shape {times.shape}")
        if len(times) > 1 and np.any(np.diff(times) <= 0.0):
            raise ValueError("times must be strictly increasing")
        if not np.all(np.isfinite(times)):
            raise ValueError("times must be finite")

        for label in labels:
            if not isinstance(label, str) or not label:
                raise ValueError(f"Column labels must be non-empty strings, got {label!r}")
        if len(set(labels)) != len(labels):
            raise ValueError(f"Column labels must be unique, got {labels}")

        # A single scalar column may be given as (N,)
        if data.ndim == 1 and len(labels) == 1:
            data = data.reshape(-1, 1)
        if data.ndim < 2:
            raise ValueError(f"data must have shape (N, C, ...), got {data.shape}")
        if data.shape[0] != len(times):
            raise ValueError(
                f"data has {data.shape[0]} rows but {len(times)} times were given"
            )
        if data.shape[1] != len(labels):
            raise ValueError(
                f"data has {data.shape[1]} columns but {len(labels)} labels were given"
            )

        self._value_kind = _infer_value_kind(data)

        times.flags.writeable = False
        data.flags.writeable = False
        self.times = times
        self.data = data
        self.column_labels = labels
        self.metadata = dict(self.metadata)

    @classmethod
    def from_columns(
        cls,
        times: Sequence[float],
        columns: Mapping[str, Sequence[float]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "NamedTimeSeries":
        """Build a scalar table from a mapping of label -> column values."""
        labels = tuple(columns.keys())
        data = np.column_stack([np.asarray(columns[label], dtype=np.float64) for label in labels])
        return cls(times=np.asarray(times), data=data, column_labels=labels,
                   metadata=dict(metadata or {}))

    @property
    def value_kind(self) -> str:
        """One of 'scalar', 'vec3', 'quaternion', 'rotation'."""
        return self._value_kind

    @property
    def num_rows(self) -> int:
        return len(self.times)

    @property
    def num_columns(self) -> int:
        return len(self.column_labels)

    def __len__(self) -> int:
        return self.num_rows

    @property
    def time_range(self) -> Tuple[float, float]:
        """(first time, last time) of the table."""
        if self.num_rows == 0:
            raise ValueError("Empty table has no time range")
        return float(self.times[0]), float(self.times[-1])

    @property
    def sampling_rate(self) -> float:
        """Sampling rate (N - 1) / (t_last - t_first) in Hz."""
        return compute_sampling_rate(self.times)

    @property
    def is_in_degrees(self) -> bool:
        """True if the metadata declares angles in degrees."""
        units = str(self.metadata.get("units", "")).strip().lower()
        return units in DEGREE_UNITS or bool(self.metadata.get("in_degrees", False))

    def column_index(self, label: str) -> int:
        """Index of a column label. Raises KeyError if absent."""
        try:
            return self.column_labels.index(label)
        except ValueError:
            raise KeyError(f"Column '{label}' not in table") from None

    def get_column(self, label: str) -> np.ndarray:
        """Values of one column over all rows."""
        return self.data[:, self.column_index(label)]

    def nearest_row_index(self, time: float) -> int:
        """Index of the row whose time is closest to the requested time."""
        if self.num_rows == 0:
            raise ValueError("Empty table has no rows")
        return int(np.argmin(np.abs(self.times - time)))

    def select_columns(self, labels: Iterable[str]) -> "NamedTimeSeries":
        """Return a new table restricted to the given columns (in that order)."""
        labels = tuple(labels)
        indices = [self.column_index(label) for label in labels]
        return NamedTimeSeries(
            times=self.times,
            data=self.data[:, indices],
            column_labels=labels,
            metadata=self.metadata,
        )

    def rename_columns(self, mapping: Mapping[str, str]) -> "NamedTimeSeries":
        """Return a new table with some columns relabelled."""
        labels = tuple(mapping.get(label, label) for label in self.column_labels)
        return NamedTimeSeries(
            times=self.times,
            data=self.data,
            column_labels=labels,
            metadata=self.metadata,
        )

    def with_data(
        self,
        data: np.ndarray,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "NamedTimeSeries":
        """Return a table with the same times and labels but new values."""
        merged = dict(self.metadata)
        if metadata:
            merged.update(metadata)
        return NamedTimeSeries(
            times=self.times,
            data=data,
            column_labels=self.column_labels,
            metadata=merged,
        )
