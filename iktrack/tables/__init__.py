"""Named time series tables and channel mapping.

This module provides the data containers that feed the IK solver:
- NamedTimeSeries: column-labelled, time-indexed tables
- Column mapping of data channels to model entities (UNMATCHED = -1)
- Unit conversion of rotational columns
- CSV persistence for scalar, vec3 and quaternion tables
"""

from iktrack.tables.column_map import UNMATCHED, ColumnMap, map_columns, require_matches
from iktrack.tables.io import load_time_series_csv, save_time_series_csv
from iktrack.tables.time_series import VALUE_KINDS, NamedTimeSeries, compute_sampling_rate
from iktrack.tables.units import (
    convert_angle_table_to_radians,
    convert_rotational_columns_to_degrees,
    convert_rotational_columns_to_radians,
)

__all__ = [
    # Tables
    "NamedTimeSeries",
    "VALUE_KINDS",
    "compute_sampling_rate",
    # Column mapping
    "UNMATCHED",
    "ColumnMap",
    "map_columns",
    "require_matches",
    # Units
    "convert_rotational_columns_to_radians",
    "convert_rotational_columns_to_degrees",
    "convert_angle_table_to_radians",
    # I/O
    "save_time_series_csv",
    "load_time_series_csv",
]
