"""Derive reference data from known coordinate trajectories.

Given a coordinate time series, run forward kinematics at every row and
collect the resulting body orientations or marker positions. This is how
orientation and marker references are built for round-trip validation:
the solved coordinates should reproduce the trajectory they came from.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from iktrack.model.skeleton import SkeletonModel
from iktrack.tables.column_map import map_columns, require_matches
from iktrack.tables.time_series import NamedTimeSeries
from iktrack.tables.units import convert_rotational_columns_to_radians


def coordinate_rows_to_poses(
    model: SkeletonModel,
    coordinate_table: NamedTimeSeries,
) -> np.ndarray:
    """
    Expand a coordinate table into full model coordinate vectors.

    Columns are matched to model coordinates by name. Model coordinates
    without a column keep their default values. Rotational columns are
    converted from degrees first if the table declares degrees.

    Args:
        model: Skeletal model.
        coordinate_table: Scalar table keyed by coordinate names.

    Returns:
        Array (N, n_coordinates) of coordinate values in model order.

    Raises:
        MappingFailure: If no column matches a model coordinate.
    """
    if coordinate_table.value_kind != "scalar":
        raise ValueError(f"Expected a scalar table, got '{coordinate_table.value_kind}'")
    if coordinate_table.is_in_degrees:
        coordinate_table = convert_rotational_columns_to_radians(
            coordinate_table, model.rotational_coordinate_names
        )

    cmap = require_matches(
        map_columns(model.coordinate_names, coordinate_table.column_labels),
        what="coordinates",
    )

    poses = np.tile(model.default_values, (coordinate_table.num_rows, 1))
    for coord_idx, col_idx in cmap.matched_pairs():
        poses[:, coord_idx] = coordinate_table.data[:, col_idx]
    return poses


def _select_bodies(model: SkeletonModel, bodies: Optional[Sequence[str]]) -> Tuple[str, ...]:
    if bodies is None:
        return model.body_names
    bodies = tuple(bodies)
    for name in bodies:
        model.get_body(name)
    return bodies


def synthesize_orientations(
    model: SkeletonModel,
    coordinate_table: NamedTimeSeries,
    bodies: Optional[Sequence[str]] = None,
) -> NamedTimeSeries:
    """
    Body orientations in ground produced by a coordinate trajectory.

    Args:
        model: Skeletal model.
        coordinate_table: Scalar coordinate table (radians, or degrees if
            declared in metadata).
        bodies: Bodies to include. Defaults to all bodies.

    Returns:
        Rotation table (N, B, 3, 3) keyed by body name.

    Example:
        >>> model = build_gait_model()
        >>> coords = simulate_gait_coordinates(model, duration=0.1)
        >>> orientations = synthesize_orientations(model, coords)
        >>> orientations.value_kind
        'rotation'
    """
    names = _select_bodies(model, bodies)
    body_indices = [model.get_body(name).index for name in names]
    poses = coordinate_rows_to_poses(model, coordinate_table)

    data = np.empty((len(poses), len(names), 3, 3))
    for row, q in enumerate(poses):
        rotations, _ = model.compute_body_transforms(q)
        data[row] = rotations[body_indices]

    metadata = {"units": "radians"}
    if "data_rate" in coordinate_table.metadata:
        metadata["data_rate"] = coordinate_table.metadata["data_rate"]
    return NamedTimeSeries(
        times=coordinate_table.times,
        data=data,
        column_labels=names,
        metadata=metadata,
    )


def synthesize_marker_positions(
    model: SkeletonModel,
    coordinate_table: NamedTimeSeries,
    markers: Optional[Sequence[str]] = None,
) -> NamedTimeSeries:
    """Marker positions in ground (N, M, 3) produced by a coordinate trajectory."""
    if markers is None:
        names = model.marker_names
    else:
        names = tuple(markers)
    marker_indices = [model.get_marker(name).index for name in names]
    poses = coordinate_rows_to_poses(model, coordinate_table)

    data = np.empty((len(poses), len(names), 3))
    for row, q in enumerate(poses):
        data[row] = model.compute_marker_positions(q)[marker_indices]

    metadata = {"units": "m"}
    if "data_rate" in coordinate_table.metadata:
        metadata["data_rate"] = coordinate_table.metadata["data_rate"]
    return NamedTimeSeries(
        times=coordinate_table.times,
        data=data,
        column_labels=names,
        metadata=metadata,
    )
