"""Rotation representations for skeletal kinematics.

This module provides functions for working with the rotation
representations used by orientation data and body poses:
- Rotation matrices
- Quaternions [qw, qx, qy, qz]
- Body-fixed XYZ Euler angles
- Rotation vectors and angular distance
"""

from iktrack.coords.rotations import (
    angular_distance,
    axis_angle_to_rotation_matrix,
    body_fixed_xyz_to_rotation_matrix,
    interpolate_rotation,
    is_rotation_matrix,
    quat_to_rotation_matrix,
    rotation_matrix_to_body_fixed_xyz,
    rotation_matrix_to_quat,
    rotation_matrix_to_rotvec,
    rotvec_to_rotation_matrix,
    skew,
)

__all__ = [
    "axis_angle_to_rotation_matrix",
    "body_fixed_xyz_to_rotation_matrix",
    "rotation_matrix_to_body_fixed_xyz",
    "quat_to_rotation_matrix",
    "rotation_matrix_to_quat",
    "rotation_matrix_to_rotvec",
    "rotvec_to_rotation_matrix",
    "angular_distance",
    "interpolate_rotation",
    "is_rotation_matrix",
    "skew",
]
