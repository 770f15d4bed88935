"""
Unit conversion for joint-angle and orientation tables.

Rotational quantities must be in radians before they enter a reference
signal. Motion-capture pipelines usually store joint angles in degrees while
translations stay in metres, so conversion is applied per column, only to the
rotational ones.

All functions return new tables; inputs are never modified. The converted
table's metadata records the new unit ("units" / "in_degrees").
"""

from typing import Iterable

import numpy as np

from iktrack.tables.time_series import NamedTimeSeries
from iktrack.utils.angles import degrees_to_radians, radians_to_degrees


def _rotational_mask(table: NamedTimeSeries, rotational_labels: Iterable[str]) -> np.ndarray:
    rotational = set(rotational_labels)
    return np.array([label in rotational for label in table.column_labels], dtype=bool)


def convert_rotational_columns_to_radians(
    table: NamedTimeSeries,
    rotational_labels: Iterable[str],
) -> NamedTimeSeries:
    """
    Convert the rotational columns of a scalar table from degrees to radians.

    Args:
        table: Scalar table with angles in degrees (e.g. a .mot style export).
        rotational_labels: Labels of the columns holding angles. Labels not in
            the table are ignored; columns not listed are left unchanged.
            With no rotational column present the table is returned as is,
            units tag included.

    Returns:
        New table with angles in radians and metadata units="radians".

    Raises:
        ValueError: If the table is not a scalar table.

    Example:
        >>> deg = NamedTimeSeries.from_columns(
        ...     [0.0, 0.01], {"hip_flexion": [0.0, 10.0], "pelvis_tx": [0.0, 0.1]},
        ...     metadata={"units": "degrees"})
        >>> rad = convert_rotational_columns_to_radians(deg, ["hip_flexion"])
        >>> round(float(rad.get_column("hip_flexion")[1]), 6)
        0.174533
    """
    if table.value_kind != "scalar":
        raise ValueError(f"Expected a scalar table, got '{table.value_kind}'")

    mask = _rotational_mask(table, rotational_labels)
    if not mask.any():
        return table
    data = np.array(table.data)
    data[:, mask] = degrees_to_radians(data[:, mask])

    return table.with_data(data, metadata={"units": "radians", "in_degrees": False})


def convert_rotational_columns_to_degrees(
    table: NamedTimeSeries,
    rotational_labels: Iterable[str],
) -> NamedTimeSeries:
    """Inverse of convert_rotational_columns_to_radians()."""
    if table.value_kind != "scalar":
        raise ValueError(f"Expected a scalar table, got '{table.value_kind}'")

    mask = _rotational_mask(table, rotational_labels)
    if not mask.any():
        return table
    data = np.array(table.data)
    data[:, mask] = radians_to_degrees(data[:, mask])

    return table.with_data(data, metadata={"units": "degrees", "in_degrees": True})


def convert_angle_table_to_radians(table: NamedTimeSeries) -> NamedTimeSeries:
    """
    Convert a table whose every value is an angle in degrees to radians.

    Used for Euler-angle tables (vec3 per body) exported in degrees.
    Tables already declared in radians are returned unchanged.
    """
    if not table.is_in_degrees:
        return table
    data = degrees_to_radians(np.array(table.data))
    return table.with_data(data, metadata={"units": "radians", "in_degrees": False})
