"""Output sink for solved coordinate values."""

from typing import List

import numpy as np

from iktrack.model.skeleton import PoseState, SkeletonModel
from iktrack.tables.time_series import NamedTimeSeries
from iktrack.utils.angles import radians_to_degrees


class CoordinateReporter:
    """Records (time, coordinate values) rows in model coordinate order.

    Args:
        model: Model whose coordinates are reported.
        in_degrees: Export rotational coordinates in degrees.

    Example:
        >>> reporter = CoordinateReporter(model, in_degrees=True)
        >>> reporter.record(state)
        >>> table = reporter.get_table()
        >>> table.metadata["units"]
        'degrees'
    """

    def __init__(self, model: SkeletonModel, in_degrees: bool = False):
        self._model = model
        self._in_degrees = in_degrees
        self._times: List[float] = []
        self._rows: List[np.ndarray] = []
        self._rotational = np.array([c.is_rotational for c in model.coordinates], dtype=bool)

    def __len__(self) -> int:
        return len(self._times)

    @property
    def times(self) -> np.ndarray:
        return np.array(self._times)

    def record(self, state: PoseState) -> None:
        """Append the state's pose. Times must be strictly increasing."""
        if state.num_coordinates != self._model.num_coordinates:
            raise ValueError(
                f"State has {state.num_coordinates} coordinates, "
                f"model has {self._model.num_coordinates}"
            )
        if self._times and state.time <= self._times[-1]:
            raise ValueError(
                f"Reported times must be strictly increasing: {state.time} <= {self._times[-1]}"
            )
        self._times.append(state.time)
        self._rows.append(state.coordinate_values)

    def clear(self) -> None:
        self._times.clear()
        self._rows.clear()

    def get_table(self) -> NamedTimeSeries:
        """Recorded poses as a scalar table keyed by coordinate name."""
        if not self._rows:
            raise ValueError("No poses have been recorded")

        data = np.vstack(self._rows)
        if self._in_degrees:
            data[:, self._rotational] = radians_to_degrees(data[:, self._rotational])

        metadata = {
            "units": "degrees" if self._in_degrees else "radians",
            "in_degrees": self._in_degrees,
        }
        if len(self._times) >= 2:
            metadata["data_rate"] = (len(self._times) - 1) / (self._times[-1] - self._times[0])

        return NamedTimeSeries(
            times=np.array(self._times),
            data=data,
            column_labels=self._model.coordinate_names,
            metadata=metadata,
        )
