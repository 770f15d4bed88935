"""
CSV persistence for time series tables.

A deliberately small format used by the dataset generator and the demos:

    # data_rate: 100.0
    # units: degrees
    time,hip_flexion_r,knee_angle_r,...
    0,12.5,3.1,...

Metadata lines start with '#' and hold "key: value" pairs. Vector-valued
tables flatten each column into one CSV column per component and record the
value kind in the preamble:

    # value_kind: vec3
    time,RASI_x,RASI_y,RASI_z,LASI_x,...

Values are written with 17 significant digits, so a save/load cycle restores
times and data exactly. Vendor formats (.mot, .sto, .trc) are read and written
by external tools.
"""

from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import numpy as np

from iktrack.tables.time_series import NamedTimeSeries

# Column suffixes per value kind; rotation matrices are stored as Euler
# angles or quaternions instead.
COMPONENT_SUFFIXES: Dict[str, Tuple[str, ...]] = {
    "scalar": ("",),
    "vec3": ("_x", "_y", "_z"),
    "quaternion": ("_w", "_x", "_y", "_z"),
}


def _parse_metadata_value(text: str) -> Any:
    lowered = text.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    try:
        return float(text)
    except ValueError:
        return text


def _split_component_labels(labels: List[str], value_kind: str, path: Path) -> Tuple[str, ...]:
    suffixes = COMPONENT_SUFFIXES[value_kind]
    if len(labels) % len(suffixes) != 0:
        raise ValueError(
            f"{path}: {len(labels)} data columns do not split into "
            f"{len(suffixes)}-component '{value_kind}' values"
        )
    names = []
    for start in range(0, len(labels), len(suffixes)):
        group = labels[start:start + len(suffixes)]
        stem = group[0][:len(group[0]) - len(suffixes[0])]
        if [stem + suffix for suffix in suffixes] != group:
            raise ValueError(f"{path}: columns {group} are not components of one '{value_kind}' value")
        names.append(stem)
    return tuple(names)


def save_time_series_csv(table: NamedTimeSeries, path: Union[str, Path]) -> Path:
    """
    Write a scalar, vec3 or quaternion table to CSV with a metadata preamble.

    Args:
        table: Table to write.
        path: Output file path. Parent directories are created.

    Returns:
        The written path.

    Raises:
        ValueError: For rotation-matrix tables.
    """
    if table.value_kind not in COMPONENT_SUFFIXES:
        raise ValueError(
            f"'{table.value_kind}' tables cannot be written to CSV; store Euler "
            f"angles or quaternions instead"
        )

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    suffixes = COMPONENT_SUFFIXES[table.value_kind]
    preamble = [f"# {key}: {value}" for key, value in table.metadata.items()]
    if table.value_kind != "scalar":
        preamble.append(f"# value_kind: {table.value_kind}")
    labels = ["time"] + [label + suffix for label in table.column_labels for suffix in suffixes]
    preamble.append(",".join(labels))

    width = table.num_columns * len(suffixes)
    rows = np.column_stack([table.times, np.reshape(table.data, (table.num_rows, width))])
    np.savetxt(path, rows, fmt="%.17g", delimiter=",", header="\n".join(preamble), comments="")
    return path


def load_time_series_csv(path: Union[str, Path]) -> NamedTimeSeries:
    """
    Read a table written by save_time_series_csv().

    Args:
        path: CSV file path.

    Returns:
        NamedTimeSeries with metadata restored; vec3 and quaternion tables
        regain their (N, C, 3) / (N, C, 4) shape.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the header row is missing or does not start with 'time',
            or the component columns do not match the declared value kind.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Time series file not found: {path}")

    metadata: Dict[str, Any] = {}
    header_line = None
    with path.open() as f:
        for line_no, line in enumerate(f):
            stripped = line.strip()
            if stripped.startswith("#"):
                key, sep, value = stripped[1:].partition(":")
                if sep:
                    metadata[key.strip()] = _parse_metadata_value(value.strip())
                continue
            if stripped:
                header_line = line_no
                labels = [label.strip() for label in stripped.split(",")]
                break

    if header_line is None or not labels or labels[0] != "time":
        raise ValueError(f"Missing 'time,...' header row in {path}")

    value_kind = metadata.pop("value_kind", "scalar")
    if value_kind not in COMPONENT_SUFFIXES:
        raise ValueError(f"{path}: unsupported value_kind '{value_kind}'")
    column_labels = _split_component_labels(labels[1:], value_kind, path)

    values = np.loadtxt(path, delimiter=",", skiprows=header_line + 1, ndmin=2)
    if values.size == 0:
        values = np.zeros((0, len(labels)))

    data = values[:, 1:]
    if value_kind != "scalar":
        data = data.reshape(len(values), len(column_labels), len(COMPONENT_SUFFIXES[value_kind]))

    return NamedTimeSeries(
        times=values[:, 0],
        data=data,
        column_labels=column_labels,
        metadata=metadata,
    )
