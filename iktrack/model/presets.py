"""Preset lower-body gait model and synthetic gait trajectories.

Axes follow the usual gait-lab convention: X forward, Y up, Z to the right.
The pelvis hangs from ground through a six-coordinate free joint whose
coordinates come first in the model order, so evaluation can skip them.

Coordinate order:
    pelvis_tilt, pelvis_list, pelvis_rotation, pelvis_tx, pelvis_ty, pelvis_tz,
    hip_flexion_r, hip_adduction_r, hip_rotation_r, knee_angle_r, ankle_angle_r,
    hip_flexion_l, hip_adduction_l, hip_rotation_l, knee_angle_l, ankle_angle_l,
    lumbar_extension, lumbar_bending, lumbar_rotation
"""

from typing import Dict, Optional, Tuple

import numpy as np

from iktrack.model.skeleton import Coordinate, MotionType, SkeletonModel
from iktrack.tables.time_series import NamedTimeSeries

_ROT = MotionType.ROTATIONAL
_TRANS = MotionType.TRANSLATIONAL

X_AXIS = (1.0, 0.0, 0.0)
Y_AXIS = (0.0, 1.0, 0.0)
Z_AXIS = (0.0, 0.0, 1.0)

STANDING_PELVIS_HEIGHT = 0.93

THIGH_LENGTH = 0.40
SHANK_LENGTH = 0.43


def _deg_range(lower: float, upper: float) -> Tuple[float, float]:
    return float(np.deg2rad(lower)), float(np.deg2rad(upper))


def _leg_coordinates(side: str):
    # Left-side adduction/rotation axes are mirrored so positive values mean
    # the same anatomical motion on both legs.
    mirror = 1.0 if side == "r" else -1.0
    hip = [
        Coordinate(f"hip_flexion_{side}", _ROT, Z_AXIS, _deg_range(-30, 120)),
        Coordinate(f"hip_adduction_{side}", _ROT, (mirror, 0.0, 0.0), _deg_range(-50, 30)),
        Coordinate(f"hip_rotation_{side}", _ROT, (0.0, mirror, 0.0), _deg_range(-40, 40)),
    ]
    knee = [Coordinate(f"knee_angle_{side}", _ROT, Z_AXIS, _deg_range(-120, 10))]
    ankle = [Coordinate(f"ankle_angle_{side}", _ROT, Z_AXIS, _deg_range(-40, 30))]
    return hip, knee, ankle


def build_gait_model(with_markers: bool = True) -> SkeletonModel:
    """
    Build the 19-coordinate lower-body gait model.

    Bodies: pelvis, femur_r, tibia_r, calcn_r, femur_l, tibia_l, calcn_l, torso.

    Args:
        with_markers: Attach a marker set (three or more markers per segment
            so every coordinate is observable from markers alone).

    Returns:
        SkeletonModel named "gait19".
    """
    model = SkeletonModel("gait19")

    model.add_body(
        "pelvis",
        coordinates=[
            Coordinate("pelvis_tilt", _ROT, Z_AXIS, _deg_range(-90, 90)),
            Coordinate("pelvis_list", _ROT, X_AXIS, _deg_range(-90, 90)),
            Coordinate("pelvis_rotation", _ROT, Y_AXIS, _deg_range(-90, 90)),
            Coordinate("pelvis_tx", _TRANS, X_AXIS, (-10.0, 10.0)),
            Coordinate("pelvis_ty", _TRANS, Y_AXIS, (-1.0, 2.0), STANDING_PELVIS_HEIGHT),
            Coordinate("pelvis_tz", _TRANS, Z_AXIS, (-3.0, 3.0)),
        ],
        joint_name="ground_pelvis",
    )

    for side, z in (("r", 0.083), ("l", -0.083)):
        hip, knee, ankle = _leg_coordinates(side)
        model.add_body(f"femur_{side}", parent="pelvis",
                       location_in_parent=(-0.07, -0.066, z), coordinates=hip,
                       joint_name=f"hip_{side}")
        model.add_body(f"tibia_{side}", parent=f"femur_{side}",
                       location_in_parent=(0.0, -THIGH_LENGTH, 0.0), coordinates=knee,
                       joint_name=f"knee_{side}")
        model.add_body(f"calcn_{side}", parent=f"tibia_{side}",
                       location_in_parent=(0.0, -SHANK_LENGTH, 0.0), coordinates=ankle,
                       joint_name=f"ankle_{side}")

    model.add_body(
        "torso",
        parent="pelvis",
        location_in_parent=(-0.10, 0.08, 0.0),
        coordinates=[
            Coordinate("lumbar_extension", _ROT, Z_AXIS, _deg_range(-90, 90)),
            Coordinate("lumbar_bending", _ROT, X_AXIS, _deg_range(-90, 90)),
            Coordinate("lumbar_rotation", _ROT, Y_AXIS, _deg_range(-90, 90)),
        ],
        joint_name="back",
    )

    if with_markers:
        model.add_marker("RASI", "pelvis", (0.02, 0.02, 0.12))
        model.add_marker("LASI", "pelvis", (0.02, 0.02, -0.12))
        model.add_marker("SACR", "pelvis", (-0.16, 0.03, 0.0))
        for side, s in (("R", 1.0), ("L", -1.0)):
            low = side.lower()
            model.add_marker(f"{side}_THIGH", f"femur_{low}", (0.03, -0.20, s * 0.06))
            model.add_marker(f"{side}_KNEE_LAT", f"femur_{low}", (0.0, -THIGH_LENGTH, s * 0.05))
            model.add_marker(f"{side}_KNEE_MED", f"femur_{low}", (0.0, -THIGH_LENGTH, -s * 0.05))
            model.add_marker(f"{side}_SHANK", f"tibia_{low}", (0.03, -0.20, s * 0.05))
            model.add_marker(f"{side}_ANKLE_LAT", f"tibia_{low}", (0.0, -SHANK_LENGTH, s * 0.04))
            model.add_marker(f"{side}_ANKLE_MED", f"tibia_{low}", (0.0, -SHANK_LENGTH, -s * 0.04))
            model.add_marker(f"{side}_HEEL", f"calcn_{low}", (-0.05, -0.03, 0.0))
            model.add_marker(f"{side}_TOE", f"calcn_{low}", (0.15, -0.03, s * 0.01))
            model.add_marker(f"{side}_MT5", f"calcn_{low}", (0.10, -0.03, s * 0.05))
        model.add_marker("C7", "torso", (-0.05, 0.45, 0.0))
        model.add_marker("STRN", "torso", (0.10, 0.30, 0.0))
        model.add_marker("R_SHO", "torso", (0.0, 0.40, 0.17))
        model.add_marker("L_SHO", "torso", (0.0, 0.40, -0.17))

    return model


# Amplitude (deg), offset (deg) and phase (cycles) of a simple sinusoidal gait
GAIT_PATTERN: Dict[str, Tuple[float, float, float]] = {
    "pelvis_tilt": (2.0, -3.0, 0.0),
    "pelvis_list": (4.0, 0.0, 0.25),
    "pelvis_rotation": (5.0, 0.0, 0.0),
    "hip_flexion_r": (22.0, 10.0, 0.0),
    "hip_adduction_r": (5.0, 0.0, 0.25),
    "hip_rotation_r": (4.0, 0.0, 0.1),
    "knee_angle_r": (30.0, -32.0, 0.75),
    "ankle_angle_r": (10.0, 0.0, 0.5),
    "hip_flexion_l": (22.0, 10.0, 0.5),
    "hip_adduction_l": (5.0, 0.0, 0.75),
    "hip_rotation_l": (4.0, 0.0, 0.6),
    "knee_angle_l": (30.0, -32.0, 0.25),
    "ankle_angle_l": (10.0, 0.0, 0.0),
    "lumbar_extension": (3.0, -5.0, 0.5),
    "lumbar_bending": (2.0, 0.0, 0.25),
    "lumbar_rotation": (4.0, 0.0, 0.5),
}


def simulate_gait_coordinates(
    model: SkeletonModel,
    duration: float = 1.0,
    data_rate: float = 100.0,
    cadence_hz: float = 1.0,
    walking_speed: float = 1.2,
    noise_std_deg: float = 0.0,
    rng: Optional[np.random.Generator] = None,
) -> NamedTimeSeries:
    """
    Generate a smooth gait-like coordinate trajectory.

    Rotational values are written in degrees, as motion-capture exports store
    them; translational values are metres. The table metadata records
    units="degrees".

    Args:
        model: Model whose coordinates are generated (unknown coordinates stay
            at their default values).
        duration: Trial length in seconds.
        data_rate: Sampling rate in Hz.
        cadence_hz: Gait cycles per second.
        walking_speed: Forward pelvis speed in m/s.
        noise_std_deg: Optional white noise added to rotational values.
        rng: Random generator used for the noise.

    Returns:
        Scalar NamedTimeSeries in model coordinate order.
    """
    if duration <= 0.0:
        raise ValueError(f"duration must be positive, got {duration}")
    if data_rate <= 0.0:
        raise ValueError(f"data_rate must be positive, got {data_rate}")

    n_samples = int(round(duration * data_rate)) + 1
    times = np.arange(n_samples) / data_rate
    phase = 2.0 * np.pi * cadence_hz * times

    columns = {}
    for coord in model.coordinates:
        if coord.name in GAIT_PATTERN:
            amplitude, offset, shift = GAIT_PATTERN[coord.name]
            values = offset + amplitude * np.sin(phase + 2.0 * np.pi * shift)
        elif coord.name == "pelvis_tx":
            values = walking_speed * times
        elif coord.name == "pelvis_ty":
            values = coord.default_value + 0.02 * np.sin(2.0 * phase)
        elif coord.is_rotational:
            values = np.full(n_samples, np.rad2deg(coord.default_value))
        else:
            values = np.full(n_samples, coord.default_value)

        if coord.is_rotational and noise_std_deg > 0.0:
            rng = rng if rng is not None else np.random.default_rng()
            values = values + rng.normal(0.0, noise_std_deg, n_samples)
        columns[coord.name] = values

    return NamedTimeSeries.from_columns(
        times,
        columns,
        metadata={"data_rate": float(data_rate), "units": "degrees", "in_degrees": True},
    )
