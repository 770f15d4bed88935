"""Articulated skeletal model and forward kinematics.

The model is a kinematic tree of rigid bodies rooted at the ground frame.
Each body hangs from its parent through a joint that carries an ordered list
of coordinates (generalized degrees of freedom):

    X_ground_child = X_ground_parent * X_parent_jointframe * X_joint(q)

where X_parent_jointframe is fixed (location + body-fixed XYZ orientation
in the parent) and X_joint(q) composes
    - rotations about the rotational coordinates' axes, in listed order
    - translations along the translational coordinates' axes, expressed in
      the joint frame (so translation order does not matter)

The configuration of the model at one instant lives in a PoseState, which is
a separate value: the model holds topology only, and any number of states can
be solved independently. Body and marker poses of a state are cached by
realize_position() and must be refreshed after every coordinate change.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from iktrack.coords.rotations import (
    axis_angle_to_rotation_matrix,
    body_fixed_xyz_to_rotation_matrix,
)


GROUND = "ground"


class MotionType(Enum):
    """Kind of motion a coordinate produces.

    Attributes:
        ROTATIONAL: Angle about an axis, in radians.
        TRANSLATIONAL: Displacement along an axis, in metres.
    """

    ROTATIONAL = "rotational"
    TRANSLATIONAL = "translational"


def _as_vec3(value, name: str) -> np.ndarray:
    vec = np.array(value, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"{name} must be a 3-vector, got shape {vec.shape}")
    if not np.all(np.isfinite(vec)):
        raise ValueError(f"{name} must be finite, got {vec}")
    return vec


@dataclass(eq=False)
class Coordinate:
    """Named scalar degree of freedom.

    Attributes:
        name: Unique coordinate name (e.g. "knee_angle_r").
        motion_type: Rotational (radians) or translational (metres).
        axis: Rotation axis or translation direction in the joint frame.
        range: (lower, upper) bounds. Defaults to (-π, π) for rotational and
            unbounded for translational coordinates.
        default_value: Value used by SkeletonModel.init_state().
        index: Position in the model's coordinate list, set by the model.
    """

    name: str
    motion_type: MotionType
    axis: np.ndarray
    range: Optional[Tuple[float, float]] = None
    default_value: float = 0.0
    index: int = field(default=-1, init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate axis and range."""
        if not isinstance(self.name, str) or not self.name:
            raise ValueError(f"Coordinate name must be a non-empty string, got {self.name!r}")
        if not isinstance(self.motion_type, MotionType):
            raise TypeError(f"motion_type must be a MotionType, got {type(self.motion_type)}")

        axis = _as_vec3(self.axis, f"Axis of '{self.name}'")
        norm = np.linalg.norm(axis)
        if norm < 1e-12:
            raise ValueError(f"Axis of '{self.name}' must be non-zero")
        self.axis = axis / norm

        if self.range is None:
            if self.motion_type is MotionType.ROTATIONAL:
                self.range = (-np.pi, np.pi)
            else:
                self.range = (-np.inf, np.inf)
        lower, upper = float(self.range[0]), float(self.range[1])
        if not lower < upper:
            raise ValueError(
                f"Range of '{self.name}' must satisfy lower < upper, got ({lower}, {upper})"
            )
        self.range = (lower, upper)

        if not lower <= self.default_value <= upper:
            raise ValueError(
                f"Default value {self.default_value} of '{self.name}' "
                f"outside range ({lower}, {upper})"
            )

    @property
    def is_rotational(self) -> bool:
        return self.motion_type is MotionType.ROTATIONAL

    def get_value(self, state: "PoseState") -> float:
        """Current value of this coordinate in a state."""
        return state.get_coordinate_value(self.index)

    def set_value(self, state: "PoseState", value: float) -> None:
        """Set the value in a state. Invalidates the realized position stage."""
        state.set_coordinate_value(self.index, value)

    def clamp(self, value: float) -> float:
        return float(np.clip(value, self.range[0], self.range[1]))


@dataclass(eq=False)
class Joint:
    """Connection of a child body to its parent frame.

    Attributes:
        name: Joint name.
        parent: Parent body name, or GROUND.
        child: Child body name.
        location_in_parent: Joint frame origin in the parent frame (metres).
        orientation_in_parent: Joint frame orientation in the parent frame,
            body-fixed XYZ angles (radians).
        coordinates: Coordinates moving the joint, in application order.
    """

    name: str
    parent: str
    child: str
    location_in_parent: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation_in_parent: np.ndarray = field(default_factory=lambda: np.zeros(3))
    coordinates: List[Coordinate] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.location_in_parent = _as_vec3(self.location_in_parent, "location_in_parent")
        self.orientation_in_parent = _as_vec3(self.orientation_in_parent, "orientation_in_parent")
        self.frame_rotation = body_fixed_xyz_to_rotation_matrix(self.orientation_in_parent)

    def motion(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Rotation and translation of the child relative to the joint frame."""
        R = np.eye(3)
        p = np.zeros(3)
        for coord in self.coordinates:
            value = q[coord.index]
            if coord.motion_type is MotionType.ROTATIONAL:
                R = R @ axis_angle_to_rotation_matrix(coord.axis, value)
            else:
                p = p + value * coord.axis
        return R, p


@dataclass(eq=False)
class Body:
    """Rigid segment of the skeleton.

    The body frame coincides with the child side of its parent joint.
    """

    name: str
    joint: Joint
    index: int = field(default=-1, init=False, repr=False)

    def get_transform_in_ground(self, state: "PoseState") -> Tuple[np.ndarray, np.ndarray]:
        """(rotation, position) of the body frame in ground. Needs a realized state."""
        return state.body_rotation(self.index), state.body_position(self.index)

    def get_rotation_in_ground(self, state: "PoseState") -> np.ndarray:
        return state.body_rotation(self.index)

    def get_position_in_ground(self, state: "PoseState") -> np.ndarray:
        return state.body_position(self.index)


@dataclass(eq=False)
class Marker:
    """Point fixed on a body, used by marker references."""

    name: str
    body: str
    location: np.ndarray
    index: int = field(default=-1, init=False, repr=False)

    def __post_init__(self) -> None:
        self.location = _as_vec3(self.location, f"Location of marker '{self.name}'")

    def get_location_in_ground(self, state: "PoseState") -> np.ndarray:
        return state.marker_position(self.index)


class PoseState:
    """Configuration of a model at one instant: coordinate values and time.

    The state is the value threaded through assembly and tracking. Setting a
    coordinate invalidates the cached body and marker poses; they become
    available again after SkeletonModel.realize_position(state).

    Example:
        >>> model = build_gait_model()
        >>> state = model.init_state()
        >>> model.get_coordinate("knee_angle_r").set_value(state, -0.5)
        >>> state.is_position_realized
        False
        >>> model.realize_position(state)
    """

    def __init__(self, coordinate_values: Sequence[float], time: float = 0.0):
        values = np.array(coordinate_values, dtype=np.float64)
        if values.ndim != 1:
            raise ValueError(f"coordinate_values must be 1D, got shape {values.shape}")
        self._q = values
        self.time = time
        self._body_rotations: Optional[np.ndarray] = None
        self._body_positions: Optional[np.ndarray] = None
        self._marker_positions: Optional[np.ndarray] = None

    @property
    def time(self) -> float:
        return self._time

    @time.setter
    def time(self, value: float) -> None:
        value = float(value)
        if not np.isfinite(value):
            raise ValueError(f"State time must be finite, got {value}")
        self._time = value

    @property
    def num_coordinates(self) -> int:
        return len(self._q)

    @property
    def coordinate_values(self) -> np.ndarray:
        """Copy of all coordinate values, in model order."""
        return self._q.copy()

    def get_coordinate_value(self, index: int) -> float:
        return float(self._q[index])

    def set_coordinate_value(self, index: int, value: float) -> None:
        if not np.isfinite(value):
            raise ValueError(f"Coordinate value must be finite, got {value}")
        self._q[index] = value
        self.invalidate()

    def set_coordinate_values(self, values: Sequence[float]) -> None:
        values = np.asarray(values, dtype=np.float64)
        if values.shape != self._q.shape:
            raise ValueError(
                f"Expected {len(self._q)} coordinate values, got shape {values.shape}"
            )
        if not np.all(np.isfinite(values)):
            raise ValueError("Coordinate values must be finite")
        self._q[:] = values
        self.invalidate()

    @property
    def is_position_realized(self) -> bool:
        return self._body_rotations is not None

    def invalidate(self) -> None:
        """Drop cached body and marker poses."""
        self._body_rotations = None
        self._body_positions = None
        self._marker_positions = None

    def _require_realized(self) -> None:
        if not self.is_position_realized:
            raise RuntimeError(
                "Position stage not realized. Call model.realize_position(state) "
                "after changing coordinates."
            )

    def body_rotation(self, index: int) -> np.ndarray:
        self._require_realized()
        return self._body_rotations[index].copy()

    def body_position(self, index: int) -> np.ndarray:
        self._require_realized()
        return self._body_positions[index].copy()

    def marker_position(self, index: int) -> np.ndarray:
        self._require_realized()
        return self._marker_positions[index].copy()

    def copy(self) -> "PoseState":
        """Independent copy (cache included)."""
        other = PoseState(self._q, self._time)
        if self.is_position_realized:
            other._body_rotations = self._body_rotations.copy()
            other._body_positions = self._body_positions.copy()
            other._marker_positions = self._marker_positions.copy()
        return other

    def __repr__(self) -> str:
        return f"PoseState(t={self._time:.4f}, n_coordinates={len(self._q)})"


class SkeletonModel:
    """Kinematic tree of bodies, joints, coordinates and markers.

    Bodies must be added parent-first, so the body list is always in
    topological order and forward kinematics is a single pass.

    Example:
        >>> model = SkeletonModel("leg")
        >>> model.add_body("thigh", coordinates=[
        ...     Coordinate("hip_flexion", MotionType.ROTATIONAL, [0, 0, 1])])
        >>> model.add_body("shank", parent="thigh", location_in_parent=[0, -0.4, 0],
        ...     coordinates=[Coordinate("knee_angle", MotionType.ROTATIONAL, [0, 0, 1])])
        >>> model.coordinate_names
        ('hip_flexion', 'knee_angle')
    """

    def __init__(self, name: str = "skeleton"):
        self.name = name
        self._bodies: List[Body] = []
        self._coordinates: List[Coordinate] = []
        self._markers: List[Marker] = []
        self._body_index: Dict[str, int] = {}
        self._coordinate_index: Dict[str, int] = {}
        self._marker_index: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_body(
        self,
        name: str,
        parent: str = GROUND,
        location_in_parent: Sequence[float] = (0.0, 0.0, 0.0),
        orientation_in_parent: Sequence[float] = (0.0, 0.0, 0.0),
        coordinates: Sequence[Coordinate] = (),
        joint_name: Optional[str] = None,
    ) -> Body:
        """
        Add a body connected to an existing parent.

        Args:
            name: Unique body name.
            parent: Name of an existing body, or GROUND.
            location_in_parent: Joint frame origin in the parent (metres).
            orientation_in_parent: Joint frame orientation, body-fixed XYZ (radians).
            coordinates: Coordinates of the connecting joint.
            joint_name: Defaults to "<parent>_<name>".

        Returns:
            The new Body.

        Raises:
            ValueError: On duplicate names or unknown parent.
        """
        if name == GROUND or name in self._body_index:
            raise ValueError(f"Body name '{name}' already in use")
        if parent != GROUND and parent not in self._body_index:
            raise ValueError(f"Unknown parent body '{parent}' for '{name}'")
        for coord in coordinates:
            if coord.name in self._coordinate_index:
                raise ValueError(f"Coordinate name '{coord.name}' already in use")
            if coord.index != -1:
                raise ValueError(f"Coordinate '{coord.name}' already belongs to a model")

        joint = Joint(
            name=joint_name or f"{parent}_{name}",
            parent=parent,
            child=name,
            location_in_parent=np.asarray(location_in_parent, dtype=np.float64),
            orientation_in_parent=np.asarray(orientation_in_parent, dtype=np.float64),
            coordinates=list(coordinates),
        )

        for coord in joint.coordinates:
            coord.index = len(self._coordinates)
            self._coordinate_index[coord.name] = coord.index
            self._coordinates.append(coord)

        body = Body(name=name, joint=joint)
        body.index = len(self._bodies)
        self._body_index[name] = body.index
        self._bodies.append(body)
        return body

    def add_marker(self, name: str, body: str, location: Sequence[float]) -> Marker:
        """Attach a marker to a body at a location in the body frame."""
        if name in self._marker_index:
            raise ValueError(f"Marker name '{name}' already in use")
        if body not in self._body_index:
            raise ValueError(f"Unknown body '{body}' for marker '{name}'")
        marker = Marker(name=name, body=body, location=np.asarray(location, dtype=np.float64))
        marker.index = len(self._markers)
        self._marker_index[name] = marker.index
        self._markers.append(marker)
        return marker

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def coordinates(self) -> Tuple[Coordinate, ...]:
        return tuple(self._coordinates)

    @property
    def bodies(self) -> Tuple[Body, ...]:
        return tuple(self._bodies)

    @property
    def markers(self) -> Tuple[Marker, ...]:
        return tuple(self._markers)

    @property
    def num_coordinates(self) -> int:
        return len(self._coordinates)

    @property
    def coordinate_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self._coordinates)

    @property
    def body_names(self) -> Tuple[str, ...]:
        return tuple(b.name for b in self._bodies)

    @property
    def marker_names(self) -> Tuple[str, ...]:
        return tuple(m.name for m in self._markers)

    @property
    def rotational_coordinate_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self._coordinates if c.is_rotational)

    @property
    def lower_bounds(self) -> np.ndarray:
        return np.array([c.range[0] for c in self._coordinates], dtype=np.float64)

    @property
    def upper_bounds(self) -> np.ndarray:
        return np.array([c.range[1] for c in self._coordinates], dtype=np.float64)

    @property
    def default_values(self) -> np.ndarray:
        return np.array([c.default_value for c in self._coordinates], dtype=np.float64)

    def get_coordinate(self, name: str) -> Coordinate:
        try:
            return self._coordinates[self._coordinate_index[name]]
        except KeyError:
            raise KeyError(f"Model '{self.name}' has no coordinate '{name}'") from None

    def get_body(self, name: str) -> Body:
        try:
            return self._bodies[self._body_index[name]]
        except KeyError:
            raise KeyError(f"Model '{self.name}' has no body '{name}'") from None

    def get_marker(self, name: str) -> Marker:
        try:
            return self._markers[self._marker_index[name]]
        except KeyError:
            raise KeyError(f"Model '{self.name}' has no marker '{name}'") from None

    # ------------------------------------------------------------------
    # Kinematics
    # ------------------------------------------------------------------

    def init_state(self, time: float = 0.0) -> PoseState:
        """New realized state at the default coordinate values."""
        state = PoseState(self.default_values, time=time)
        self.realize_position(state)
        return state

    def compute_body_transforms(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Forward kinematics of all bodies for coordinate values q.

        Pure function of q; does not touch any state.

        Args:
            q: Coordinate values (n_coordinates,).

        Returns:
            Tuple (rotations (n_bodies, 3, 3), positions (n_bodies, 3)) in ground.
        """
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (len(self._coordinates),):
            raise ValueError(
                f"Expected {len(self._coordinates)} coordinate values, got shape {q.shape}"
            )

        n_bodies = len(self._bodies)
        rotations = np.empty((n_bodies, 3, 3))
        positions = np.empty((n_bodies, 3))

        for body in self._bodies:
            joint = body.joint
            if joint.parent == GROUND:
                R_parent = np.eye(3)
                p_parent = np.zeros(3)
            else:
                parent_idx = self._body_index[joint.parent]
                R_parent = rotations[parent_idx]
                p_parent = positions[parent_idx]

            R_frame = R_parent @ joint.frame_rotation
            p_frame = p_parent + R_parent @ joint.location_in_parent
            R_joint, p_joint = joint.motion(q)

            rotations[body.index] = R_frame @ R_joint
            positions[body.index] = p_frame + R_frame @ p_joint

        return rotations, positions

    def compute_marker_positions(
        self,
        q: np.ndarray,
        transforms: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> np.ndarray:
        """Marker positions in ground (n_markers, 3) for coordinate values q."""
        if transforms is None:
            transforms = self.compute_body_transforms(q)
        rotations, positions = transforms

        result = np.empty((len(self._markers), 3))
        for marker in self._markers:
            b = self._body_index[marker.body]
            result[marker.index] = positions[b] + rotations[b] @ marker.location
        return result

    def realize_position(self, state: PoseState) -> None:
        """Compute and cache body and marker poses of a state."""
        if state.num_coordinates != len(self._coordinates):
            raise ValueError(
                f"State has {state.num_coordinates} coordinates, "
                f"model '{self.name}' has {len(self._coordinates)}"
            )
        q = state.coordinate_values
        rotations, positions = self.compute_body_transforms(q)
        markers = self.compute_marker_positions(q, (rotations, positions))
        state._body_rotations = rotations
        state._body_positions = positions
        state._marker_positions = markers

    def get_body_rotation(self, state: PoseState, name: str) -> np.ndarray:
        return self.get_body(name).get_rotation_in_ground(state)

    def get_body_position(self, state: PoseState, name: str) -> np.ndarray:
        return self.get_body(name).get_position_in_ground(state)

    def get_marker_position(self, state: PoseState, name: str) -> np.ndarray:
        return self.get_marker(name).get_location_in_ground(state)

    def __repr__(self) -> str:
        return (
            f"SkeletonModel('{self.name}', bodies={len(self._bodies)}, "
            f"coordinates={len(self._coordinates)}, markers={len(self._markers)})"
        )
