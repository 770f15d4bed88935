"""
Accuracy evaluation of solved coordinates against a baseline solution.

The produced table (IK output, radians / metres) is matched column by column
to a baseline table by name. Matched columns are compared over all rows with
RMSE; columns whose RMSE exceeds the threshold become ValidationFailure
records. Nothing here raises for a bad column: the report carries the
verdict and the caller decides.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

import numpy as np

from iktrack.errors import ValidationFailure
from iktrack.eval.metrics import compute_column_rmse
from iktrack.tables.column_map import ColumnMap, map_columns, require_matches
from iktrack.tables.time_series import NamedTimeSeries
from iktrack.tables.units import convert_rotational_columns_to_radians


@dataclass
class ColumnAccuracy:
    """RMSE of one matched column.

    Attributes:
        label: Produced column label.
        baseline_index: Column index in the baseline table.
        rmse: Root mean square error over all compared rows.
        max_abs_error: Largest absolute error.
        threshold: Threshold the RMSE was tested against.
    """

    label: str
    baseline_index: int
    rmse: float
    max_abs_error: float
    threshold: float

    @property
    def passed(self) -> bool:
        return bool(np.isfinite(self.rmse) and self.rmse <= self.threshold)


@dataclass
class AccuracyReport:
    """Per-column accuracy of a produced table against a baseline.

    Attributes:
        columns: Accuracy of every compared column, in produced order.
        unmatched: Produced labels with no baseline column (excluded).
        skipped: Produced labels excluded by skip_first.
        failures: ValidationFailure for every column above threshold.
        threshold: RMSE threshold used.
        column_map: Map produced label -> baseline column (-1 if unmatched).
    """

    columns: List[ColumnAccuracy]
    unmatched: List[str]
    skipped: List[str]
    failures: List[ValidationFailure]
    threshold: float
    column_map: ColumnMap = field(repr=False)

    @property
    def passed(self) -> bool:
        return not self.failures

    def rmse_by_label(self) -> Dict[str, float]:
        return {col.label: col.rmse for col in self.columns}

    def raise_for_failures(self) -> None:
        """Raise the first ValidationFailure, if any."""
        if self.failures:
            raise self.failures[0]

    def summary(self) -> str:
        lines = [
            f"Compared columns:   {len(self.columns)}",
            f"Unmatched columns:  {len(self.unmatched)}"
            + (f" ({', '.join(self.unmatched)})" if self.unmatched else ""),
            f"Skipped columns:    {len(self.skipped)}",
            f"Threshold:          {self.threshold:g}",
        ]
        for col in self.columns:
            flag = "ok" if col.passed else "FAIL"
            lines.append(f"  {col.label:<20s} rmse={col.rmse:.3e} max={col.max_abs_error:.3e} {flag}")
        lines.append(f"Result:             {'PASS' if self.passed else 'FAIL'} "
                     f"({len(self.failures)} failures)")
        return "\n".join(lines)


def _baseline_on_times(baseline: NamedTimeSeries, times: np.ndarray) -> np.ndarray:
    """Baseline rows at the produced times (linear interpolation if needed)."""
    if len(baseline.times) == len(times) and np.allclose(baseline.times, times, rtol=0.0, atol=1e-9):
        return np.array(baseline.data)

    start, end = baseline.time_range
    slack = 1e-9 * max(1.0, abs(start), abs(end))
    if times[0] < start - slack or times[-1] > end + slack:
        raise ValueError(
            f"Produced times [{times[0]}, {times[-1]}] exceed the baseline range [{start}, {end}]"
        )
    clipped = np.clip(times, start, end)
    return np.column_stack([
        np.interp(clipped, baseline.times, baseline.data[:, j])
        for j in range(baseline.num_columns)
    ])


def evaluate_coordinate_accuracy(
    produced: NamedTimeSeries,
    baseline: NamedTimeSeries,
    threshold: float,
    skip_first: int = 0,
    rotational_labels: Iterable[str] = (),
    baseline_in_degrees: bool = True,
) -> AccuracyReport:
    """
    Compare produced coordinates with a baseline solution column by column.

    Args:
        produced: Solved coordinate table in radians / metres.
        baseline: Baseline table; rotational columns in degrees when
            baseline_in_degrees is True.
        threshold: Maximum allowed RMSE per column (radians / metres).
        skip_first: Number of leading produced columns to exclude, e.g. the
            six pelvis coordinates of a free joint.
        rotational_labels: Labels of rotational columns (converted to radians).
            Required whenever a table holds degrees.
        baseline_in_degrees: Whether the baseline rotational columns are in
            degrees. Pass False for a baseline already in radians.

    Returns:
        AccuracyReport.

    Raises:
        ValueError: Non-scalar tables, bad threshold/skip_first, a table in
            degrees without rotational_labels, or produced times outside the
            baseline time range.
        MappingFailure: If no produced column matches a baseline column.

    Example:
        >>> report = evaluate_coordinate_accuracy(
        ...     run.coordinates, baseline, threshold=np.deg2rad(0.1), skip_first=6,
        ...     rotational_labels=model.rotational_coordinate_names)
        >>> report.passed
        True
    """
    if produced.value_kind != "scalar" or baseline.value_kind != "scalar":
        raise ValueError("Accuracy evaluation needs scalar tables")
    if not threshold > 0.0:
        raise ValueError(f"threshold must be positive, got {threshold}")
    if skip_first < 0:
        raise ValueError(f"skip_first must be >= 0, got {skip_first}")

    rotational_labels = tuple(rotational_labels)
    if (baseline_in_degrees or produced.is_in_degrees) and not rotational_labels:
        raise ValueError(
            "rotational_labels must name the angle columns of a table in degrees"
        )
    if produced.is_in_degrees:
        produced = convert_rotational_columns_to_radians(produced, rotational_labels)
    if baseline_in_degrees:
        baseline = convert_rotational_columns_to_radians(baseline, rotational_labels)

    column_map = require_matches(
        map_columns(produced.column_labels, baseline.column_labels),
        what="coordinates",
    )
    baseline_rows = _baseline_on_times(baseline, np.asarray(produced.times))

    columns: List[ColumnAccuracy] = []
    unmatched: List[str] = []
    skipped: List[str] = []
    failures: List[ValidationFailure] = []

    for i, label in enumerate(produced.column_labels):
        j = int(column_map.indices[i])
        if i < skip_first:
            skipped.append(label)
            continue
        if j < 0:
            unmatched.append(label)
            continue

        values = produced.data[:, i]
        reference = baseline_rows[:, j]
        rmse = float(compute_column_rmse(values, reference)[0])
        diff = np.abs(values - reference)
        diff = diff[np.isfinite(diff)]
        max_abs = float(diff.max()) if len(diff) else float("nan")

        column = ColumnAccuracy(label, j, rmse, max_abs, float(threshold))
        columns.append(column)
        if not column.passed:
            failures.append(ValidationFailure(label, rmse, threshold))

    return AccuracyReport(
        columns=columns,
        unmatched=unmatched,
        skipped=skipped,
        failures=failures,
        threshold=float(threshold),
        column_map=column_map,
    )
