"""Skeletal model: bodies, joints, coordinates, markers and forward kinematics.

This module provides:
- SkeletonModel and its building blocks (Coordinate, Joint, Body, Marker)
- PoseState, the per-instant configuration value
- The gait preset model and a synthetic gait trajectory generator
- Forward-kinematics synthesis of orientation and marker tables
"""

from iktrack.model.presets import build_gait_model, simulate_gait_coordinates
from iktrack.model.skeleton import (
    GROUND,
    Body,
    Coordinate,
    Joint,
    Marker,
    MotionType,
    PoseState,
    SkeletonModel,
)
from iktrack.model.synthesis import (
    coordinate_rows_to_poses,
    synthesize_marker_positions,
    synthesize_orientations,
)

__all__ = [
    "GROUND",
    "Body",
    "Coordinate",
    "Joint",
    "Marker",
    "MotionType",
    "PoseState",
    "SkeletonModel",
    "build_gait_model",
    "simulate_gait_coordinates",
    "coordinate_rows_to_poses",
    "synthesize_orientations",
    "synthesize_marker_positions",
]
