"""Rotation representations and conversions.

This module provides functions to convert between the rotation
representations used by skeletal models and orientation data:
- Rotation matrices (3x3 orthogonal matrices, SO(3))
- Quaternions (unit quaternions, q = [qw, qx, qy, qz])
- Body-fixed XYZ Euler angles (successive rotations about x, y', z'')
- Rotation vectors (axis * angle, the SO(3) logarithm)

Conventions:
- Quaternions: [qw, qx, qy, qz] where qw is the scalar part
- Body-fixed XYZ: R = Rx(a) @ Ry(b) @ Rz(c), angles in radians
- Rotation matrices: 3x3 numpy arrays mapping body-frame vectors into the
  ground frame, v_ground = R @ v_body

Orientation residuals are measured with the rotation vector of the relative
rotation R_target^T @ R_predicted, whose norm is the angular distance between
the two orientations. This avoids the sign and branch discontinuities of Euler
angle or raw matrix-element differences.
"""

import numpy as np
from numpy.typing import NDArray


def axis_angle_to_rotation_matrix(
    axis: NDArray[np.float64],
    angle: float,
) -> NDArray[np.float64]:
    """Convert an axis and a rotation angle to a rotation matrix.

    Uses Rodrigues' formula:
        R = I + sin(θ) K + (1 - cos(θ)) K²
    where K is the skew-symmetric matrix of the unit axis.

    Args:
        axis: Rotation axis (3,). Normalized internally.
        angle: Rotation angle θ in radians (right-hand rule).

    Returns:
        3x3 rotation matrix.

    Raises:
        ValueError: If axis is not a non-zero 3-vector.

    Example:
        >>> R = axis_angle_to_rotation_matrix(np.array([0.0, 0.0, 1.0]), np.pi / 2)
        >>> np.round(R @ np.array([1.0, 0.0, 0.0]), 6)
        array([0., 1., 0.])
    """
    axis = np.asarray(axis, dtype=np.float64)
    if axis.shape != (3,):
        raise ValueError(f"Expected 3-element axis, got shape {axis.shape}")
    norm = np.linalg.norm(axis)
    if norm < 1e-12:
        raise ValueError("Rotation axis must be non-zero")
    k = axis / norm

    K = skew(k)
    return np.eye(3) + np.sin(angle) * K + (1.0 - np.cos(angle)) * (K @ K)


def skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return the skew-symmetric cross-product matrix [v]x of a 3-vector."""
    return np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ],
        dtype=np.float64,
    )


def body_fixed_xyz_to_rotation_matrix(angles: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert body-fixed XYZ Euler angles to a rotation matrix.

    The rotation is built as successive rotations about the body x axis,
    the new y axis and the new z axis:
        R = Rx(a) @ Ry(b) @ Rz(c)

    Args:
        angles: Euler angles [a, b, c] in radians.

    Returns:
        3x3 rotation matrix.

    Raises:
        ValueError: If angles is not a 3-element array.

    Example:
        >>> R = body_fixed_xyz_to_rotation_matrix(np.array([0.1, 0.2, 0.3]))
        >>> print(f"Determinant (should be 1.0): {np.linalg.det(R):.6f}")
    """
    angles = np.asarray(angles, dtype=np.float64)
    if angles.shape != (3,):
        raise ValueError(f"Expected 3 Euler angles, got shape {angles.shape}")

    ca, sa = np.cos(angles[0]), np.sin(angles[0])
    cb, sb = np.cos(angles[1]), np.sin(angles[1])
    cc, sc = np.cos(angles[2]), np.sin(angles[2])

    R = np.array(
        [
            [cb * cc, -cb * sc, sb],
            [ca * sc + sa * sb * cc, ca * cc - sa * sb * sc, -sa * cb],
            [sa * sc - ca * sb * cc, sa * cc + ca * sb * sc, ca * cb],
        ],
        dtype=np.float64,
    )

    return R


def rotation_matrix_to_body_fixed_xyz(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a rotation matrix to body-fixed XYZ Euler angles.

    Inverse of body_fixed_xyz_to_rotation_matrix(). The middle angle lies in
    [-π/2, π/2]. At gimbal lock (middle angle ±90°) only a + c (or a - c) is
    observable, and c is set to zero by convention.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Euler angles [a, b, c] in radians.

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    sin_b = np.clip(R[0, 2], -1.0, 1.0)

    if abs(sin_b) > 1.0 - 1e-12:
        b = np.copysign(np.pi / 2.0, sin_b)
        c = 0.0
        a = np.arctan2(R[2, 1], R[1, 1])
    else:
        b = np.arcsin(sin_b)
        a = np.arctan2(-R[1, 2], R[2, 2])
        c = np.arctan2(-R[0, 1], R[0, 0])

    return np.array([a, b, c], dtype=np.float64)


def quat_to_rotation_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert quaternion to rotation matrix.

    Args:
        q: Quaternion as numpy array [qw, qx, qy, qz]. Normalized internally.

    Returns:
        3x3 rotation matrix.

    Raises:
        ValueError: If q is not a 4-element array or has zero norm.

    Example:
        >>> q = np.array([1.0, 0.0, 0.0, 0.0])  # Identity rotation
        >>> R = quat_to_rotation_matrix(q)
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"Expected 4-element quaternion, got shape {q.shape}")
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Quaternion must have non-zero norm")

    qw, qx, qy, qz = q / norm

    R = np.array(
        [
            [
                1.0 - 2.0 * (qy * qy + qz * qz),
                2.0 * (qx * qy - qw * qz),
                2.0 * (qx * qz + qw * qy),
            ],
            [
                2.0 * (qx * qy + qw * qz),
                1.0 - 2.0 * (qx * qx + qz * qz),
                2.0 * (qy * qz - qw * qx),
            ],
            [
                2.0 * (qx * qz - qw * qy),
                2.0 * (qy * qz + qw * qx),
                1.0 - 2.0 * (qx * qx + qy * qy),
            ],
        ],
        dtype=np.float64,
    )

    return R


def rotation_matrix_to_quat(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert rotation matrix to quaternion.

    Extracts a unit quaternion from a 3x3 rotation matrix using
    Shepperd's method for numerical stability. The returned quaternion has a
    non-negative scalar part.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Unit quaternion as numpy array [qw, qx, qy, qz].

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    # Shepperd's method: choose largest diagonal element for stability
    trace = np.trace(R)

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        qw = 0.25 / s
        qx = (R[2, 1] - R[1, 2]) * s
        qy = (R[0, 2] - R[2, 0]) * s
        qz = (R[1, 0] - R[0, 1]) * s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        qw = (R[2, 1] - R[1, 2]) / s
        qx = 0.25 * s
        qy = (R[0, 1] + R[1, 0]) / s
        qz = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        qw = (R[0, 2] - R[2, 0]) / s
        qx = (R[0, 1] + R[1, 0]) / s
        qy = 0.25 * s
        qz = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        qw = (R[1, 0] - R[0, 1]) / s
        qx = (R[0, 2] + R[2, 0]) / s
        qy = (R[1, 2] + R[2, 1]) / s
        qz = 0.25 * s

    q = np.array([qw, qx, qy, qz], dtype=np.float64)
    q = q / np.linalg.norm(q)

    # q and -q encode the same rotation
    if q[0] < 0.0:
        q = -q

    return q


def rotation_matrix_to_rotvec(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a rotation matrix to its rotation vector (SO(3) logarithm).

    The rotation vector is axis * angle with angle in [0, π]. It is computed
    through the quaternion so that it stays well conditioned both near the
    identity and near a half turn.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Rotation vector (3,) in radians.
    """
    q = rotation_matrix_to_quat(R)
    v = q[1:]
    sin_half = np.linalg.norm(v)
    if sin_half < 1e-12:
        # First-order expansion near the identity
        return 2.0 * v
    angle = 2.0 * np.arctan2(sin_half, q[0])
    return v * (angle / sin_half)


def rotvec_to_rotation_matrix(rotvec: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a rotation vector (axis * angle) to a rotation matrix."""
    rotvec = np.asarray(rotvec, dtype=np.float64)
    if rotvec.shape != (3,):
        raise ValueError(f"Expected 3-element rotation vector, got shape {rotvec.shape}")
    angle = np.linalg.norm(rotvec)
    if angle < 1e-12:
        return np.eye(3) + skew(rotvec)
    return axis_angle_to_rotation_matrix(rotvec / angle, angle)


def angular_distance(R1: NDArray[np.float64], R2: NDArray[np.float64]) -> float:
    """Angle in radians of the rotation taking R1 onto R2, in [0, π].

    Example:
        >>> Ra = body_fixed_xyz_to_rotation_matrix(np.array([0.0, 0.0, 0.1]))
        >>> Rb = body_fixed_xyz_to_rotation_matrix(np.array([0.0, 0.0, 0.3]))
        >>> round(angular_distance(Ra, Rb), 6)
        0.2
    """
    return float(np.linalg.norm(rotation_matrix_to_rotvec(np.asarray(R1).T @ np.asarray(R2))))


def interpolate_rotation(
    R0: NDArray[np.float64],
    R1: NDArray[np.float64],
    alpha: float,
) -> NDArray[np.float64]:
    """Geodesic interpolation between two rotations.

    Returns R0 @ exp(alpha * log(R0^T @ R1)), so alpha=0 gives R0 and
    alpha=1 gives R1.
    """
    delta = rotation_matrix_to_rotvec(np.asarray(R0).T @ np.asarray(R1))
    return np.asarray(R0) @ rotvec_to_rotation_matrix(alpha * delta)


def is_rotation_matrix(R: NDArray[np.float64], atol: float = 1e-6) -> bool:
    """Check that R is orthonormal with determinant +1."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        return False
    return bool(
        np.allclose(R.T @ R, np.eye(3), atol=atol)
        and abs(np.linalg.det(R) - 1.0) < atol
    )
