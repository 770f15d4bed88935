"""Weighted reference signals for inverse kinematics.

A reference wraps one experimental time series and resolves, once, which of
its columns feed which model entity. It then answers a single per-frame query:

    targets_at(time) -> (entity_indices, targets, weights)

for every matched channel whose target is finite at that time. Between
samples targets are linearly interpolated (geodesically for rotations).

Variants:
    - CoordinateReference:   scalar coordinate targets (radians / metres)
    - MarkersReference:      3-D marker positions in ground (metres)
    - OrientationsReference: 3×3 body rotations in ground
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from iktrack.coords.rotations import (
    body_fixed_xyz_to_rotation_matrix,
    interpolate_rotation,
    quat_to_rotation_matrix,
)
from iktrack.model.skeleton import SkeletonModel
from iktrack.tables.column_map import ColumnMap, map_columns, require_matches
from iktrack.tables.time_series import NamedTimeSeries, compute_sampling_rate

# Relative slack when testing a time against the valid range
TIME_TOLERANCE = 1e-9


class Reference(ABC):
    """Base class: one table, its column map and per-channel weights.

    Args:
        model: Skeletal model whose entities the columns are matched to.
        table: Experimental time series with at least one row.
        default_weight: Weight of every channel not listed in `weights`.
        weights: Optional mapping channel name -> weight.

    Raises:
        ValueError: Wrong value kind, empty table, negative weights, or a
            weight given for a channel that is not matched.
        MappingFailure: If no column matches a model entity.
    """

    value_kind = "scalar"
    entity_kind = "channels"

    def __init__(
        self,
        model: SkeletonModel,
        table: NamedTimeSeries,
        default_weight: float = 1.0,
        weights: Optional[Mapping[str, float]] = None,
    ):
        if table.value_kind != self.value_kind:
            raise ValueError(
                f"{type(self).__name__} needs a '{self.value_kind}' table, "
                f"got '{table.value_kind}'"
            )
        if table.num_rows == 0:
            raise ValueError(f"{type(self).__name__} needs at least one row of data")
        if not np.isfinite(default_weight) or default_weight < 0.0:
            raise ValueError(f"default_weight must be finite and >= 0, got {default_weight}")

        self._model = model
        self._table = table
        self._column_map = require_matches(
            map_columns(self._entity_names(model), table.column_labels),
            what=self.entity_kind,
        )

        pairs = self._column_map.matched_pairs()
        self._entity_indices = np.array([e for e, _ in pairs], dtype=np.int64)
        column_indices = [c for _, c in pairs]
        self._names = tuple(self._column_map.entity_names[e] for e, _ in pairs)

        data = np.array(table.data[:, column_indices])
        data.flags.writeable = False
        self._data = data

        self._weights = np.full(len(self._names), float(default_weight))
        for name, weight in (weights or {}).items():
            self.set_weight(name, weight)

    @classmethod
    @abstractmethod
    def _entity_names(cls, model: SkeletonModel) -> Sequence[str]:
        """Model entity names in model order."""

    @property
    def model(self) -> SkeletonModel:
        return self._model

    @property
    def table(self) -> NamedTimeSeries:
        return self._table

    @property
    def column_map(self) -> ColumnMap:
        return self._column_map

    @property
    def names(self) -> Tuple[str, ...]:
        """Matched channel names, in model order."""
        return self._names

    @property
    def num_channels(self) -> int:
        return len(self._names)

    @property
    def entity_indices(self) -> np.ndarray:
        return self._entity_indices.copy()

    @property
    def weights(self) -> np.ndarray:
        return self._weights.copy()

    @property
    def times(self) -> np.ndarray:
        return self._table.times

    @property
    def data_rate(self) -> float:
        """Sampling rate in Hz (metadata "data_rate" for single-row tables)."""
        if self._table.num_rows >= 2:
            return compute_sampling_rate(self._table.times)
        return float(self._table.metadata.get("data_rate", np.nan))

    def get_weight(self, name: str) -> float:
        return float(self._weights[self._channel_position(name)])

    def set_weight(self, name: str, weight: float) -> None:
        """Change the weight of one matched channel."""
        weight = float(weight)
        if not np.isfinite(weight) or weight < 0.0:
            raise ValueError(f"Weight of '{name}' must be finite and >= 0, got {weight}")
        self._weights[self._channel_position(name)] = weight

    def _channel_position(self, name: str) -> int:
        try:
            return self._names.index(name)
        except ValueError:
            raise ValueError(
                f"'{name}' is not a matched channel of {type(self).__name__} "
                f"(matched: {list(self._names)})"
            ) from None

    def get_valid_time_range(self) -> Tuple[float, float]:
        """[first sample time, last sample time]."""
        return self._table.time_range

    def contains_time(self, time: float) -> bool:
        start, end = self.get_valid_time_range()
        slack = TIME_TOLERANCE * max(1.0, abs(start), abs(end))
        return start - slack <= time <= end + slack

    def _interpolate(self, v0: np.ndarray, v1: np.ndarray, alpha: float) -> np.ndarray:
        return (1.0 - alpha) * v0 + alpha * v1

    def values_at(self, time: float) -> np.ndarray:
        """Values of all matched channels at a time inside the valid range."""
        if not self.contains_time(time):
            start, end = self.get_valid_time_range()
            raise ValueError(
                f"Time {time} outside the valid range [{start}, {end}] "
                f"of {type(self).__name__}"
            )
        times = self._table.times
        time = float(np.clip(time, times[0], times[-1]))
        i = int(np.searchsorted(times, time, side="right")) - 1
        if i >= len(times) - 1 or times[i] == time:
            return self._data[min(i, len(times) - 1)].copy()
        alpha = (time - times[i]) / (times[i + 1] - times[i])
        return self._interpolate(self._data[i], self._data[i + 1], alpha)

    def targets_at(self, time: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Targets of every matched channel with finite data at a time.

        Args:
            time: Query time within get_valid_time_range().

        Returns:
            Tuple (entity_indices (K,), targets (K, ...), weights (K,)).

        Raises:
            ValueError: If the time is outside the valid range.
        """
        values = self.values_at(time)
        finite = np.all(np.isfinite(values.reshape(len(values), -1)), axis=1)
        return self._entity_indices[finite], values[finite], self._weights[finite]

    def __repr__(self) -> str:
        start, end = self.get_valid_time_range()
        return (
            f"{type(self).__name__}(channels={self.num_channels}, "
            f"rows={self._table.num_rows}, t=[{start:.3f}, {end:.3f}])"
        )


class CoordinateReference(Reference):
    """Direct targets for coordinate values.

    Rotational targets must already be in radians: tables whose metadata
    declares degrees are rejected.
    """

    value_kind = "scalar"
    entity_kind = "coordinates"

    def __init__(self, model, table, default_weight=1.0, weights=None):
        if table.is_in_degrees:
            raise ValueError(
                "Coordinate table is declared in degrees; convert rotational "
                "columns to radians before building a CoordinateReference"
            )
        super().__init__(model, table, default_weight, weights)

    @classmethod
    def _entity_names(cls, model):
        return model.coordinate_names


class MarkersReference(Reference):
    """Target marker positions in ground. NaN rows mark missing markers."""

    value_kind = "vec3"
    entity_kind = "markers"

    @classmethod
    def _entity_names(cls, model):
        return model.marker_names


def _check_rotations(data: np.ndarray, atol: float = 1e-4) -> None:
    """Raise ValueError if any finite matrix of a rotation table is not a rotation."""
    flat = data.reshape(-1, 3, 3)
    finite = np.all(np.isfinite(flat.reshape(len(flat), -1)), axis=1)
    R = flat[finite]
    if len(R) == 0:
        return
    orthogonality = np.abs(np.einsum("kji,kjl->kil", R, R) - np.eye(3)).max()
    if orthogonality > atol or np.any(np.abs(np.linalg.det(R) - 1.0) > atol):
        raise ValueError("Orientation table contains matrices that are not rotations")


class OrientationsReference(Reference):
    """Target body orientations in ground as rotation matrices.

    Example:
        >>> model = build_gait_model()
        >>> coords = simulate_gait_coordinates(model, duration=0.1)
        >>> oref = OrientationsReference(model, synthesize_orientations(model, coords))
        >>> oref.names[:2]
        ('pelvis', 'femur_r')
    """

    value_kind = "rotation"
    entity_kind = "bodies"

    def __init__(self, model, table, default_weight=1.0, weights=None):
        if table.value_kind == "rotation":
            _check_rotations(table.data)
        super().__init__(model, table, default_weight, weights)

    @classmethod
    def _entity_names(cls, model):
        return model.body_names

    def _interpolate(self, v0, v1, alpha):
        out = np.empty_like(v0)
        for k in range(len(v0)):
            if np.all(np.isfinite(v0[k])) and np.all(np.isfinite(v1[k])):
                out[k] = interpolate_rotation(v0[k], v1[k], alpha)
            else:
                out[k] = np.nan
        return out

    @classmethod
    def from_euler_angles(
        cls,
        model: SkeletonModel,
        table: NamedTimeSeries,
        default_weight: float = 1.0,
        weights: Optional[Mapping[str, float]] = None,
    ) -> "OrientationsReference":
        """
        Build from body-fixed XYZ Euler angles in radians (vec3 table).

        Raises:
            ValueError: If the table is not vec3 or declares degrees.
        """
        if table.value_kind != "vec3":
            raise ValueError(f"Euler angle table must be 'vec3', got '{table.value_kind}'")
        if table.is_in_degrees:
            raise ValueError(
                "Euler angle table is declared in degrees; convert it to radians first"
            )
        n_rows, n_cols = table.data.shape[:2]
        rotations = np.full((n_rows, n_cols, 3, 3), np.nan)
        for i in range(n_rows):
            for j in range(n_cols):
                angles = table.data[i, j]
                if np.all(np.isfinite(angles)):
                    rotations[i, j] = body_fixed_xyz_to_rotation_matrix(angles)
        return cls(model, table.with_data(rotations), default_weight, weights)

    @classmethod
    def from_quaternions(
        cls,
        model: SkeletonModel,
        table: NamedTimeSeries,
        default_weight: float = 1.0,
        weights: Optional[Mapping[str, float]] = None,
    ) -> "OrientationsReference":
        """Build from unit quaternions [w, x, y, z] (quaternion table)."""
        if table.value_kind != "quaternion":
            raise ValueError(
                f"Quaternion table must be 'quaternion', got '{table.value_kind}'"
            )
        n_rows, n_cols = table.data.shape[:2]
        rotations = np.full((n_rows, n_cols, 3, 3), np.nan)
        for i in range(n_rows):
            for j in range(n_cols):
                quat = table.data[i, j]
                if np.all(np.isfinite(quat)):
                    rotations[i, j] = quat_to_rotation_matrix(quat)
        return cls(model, table.with_data(rotations), default_weight, weights)
