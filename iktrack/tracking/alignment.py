"""Time alignment of reference signals.

The solve can only run where every reference has data. The aligner
intersects the references' valid ranges and picks the sample times to solve
at: those of the authoritative signal (orientations first, then markers,
then coordinates), or an explicit list supplied by the caller.
"""

import logging
import warnings
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from iktrack.tables.time_series import compute_sampling_rate
from iktrack.tracking.references import (
    CoordinateReference,
    MarkersReference,
    OrientationsReference,
    Reference,
    TIME_TOLERANCE,
)

logger = logging.getLogger(__name__)

# Relative spread of sample intervals tolerated before warning
IRREGULAR_SAMPLING_TOLERANCE = 1e-3

_PRIORITY = (OrientationsReference, MarkersReference, CoordinateReference)


def _present(references: Iterable[Optional[Reference]]) -> List[Reference]:
    return [ref for ref in references if ref is not None]


def compute_valid_time_range(
    references: Iterable[Optional[Reference]],
) -> Tuple[float, float]:
    """
    Intersection of the valid time ranges of the references present.

    Args:
        references: References; None entries are ignored.

    Returns:
        (start, end) with start <= end.

    Raises:
        ValueError: If no reference is present or the ranges do not overlap.
    """
    present = _present(references)
    if not present:
        raise ValueError("At least one reference is required to compute a time range")

    ranges = [ref.get_valid_time_range() for ref in present]
    start = max(r[0] for r in ranges)
    end = min(r[1] for r in ranges)
    if start > end:
        raise ValueError(
            f"Reference time ranges do not overlap: {ranges} "
            f"(intersection [{start}, {end}] is empty)"
        )
    return start, end


class TimeSeriesAligner:
    """Valid time range and solve times for a set of references.

    Args:
        references: References present in the solve (None entries ignored).
        times: Optional explicit solve times. Must be strictly increasing and
            inside the valid time range.

    Raises:
        ValueError: No reference, non-overlapping ranges, invalid explicit
            times, or no sample of the authoritative signal in range.

    Example:
        >>> aligner = TimeSeriesAligner([orientations_ref, coordinate_ref])
        >>> aligner.valid_time_range
        (0.0, 1.0)
        >>> aligner.sample_times[:3]
        array([0.  , 0.01, 0.02])
    """

    def __init__(
        self,
        references: Sequence[Optional[Reference]],
        times: Optional[Sequence[float]] = None,
    ):
        self._references = _present(references)
        self._valid_time_range = compute_valid_time_range(self._references)
        self._authoritative = self._pick_authoritative(self._references)

        if times is None:
            self._sample_times = self._times_from_authoritative()
        else:
            self._sample_times = self._validate_times(times)
        self._sample_times.flags.writeable = False

        self._check_regular_sampling()
        logger.debug(
            "Aligned %d references on [%.4f, %.4f]: %d sample times from %s",
            len(self._references),
            self._valid_time_range[0],
            self._valid_time_range[1],
            len(self._sample_times),
            "caller" if times is not None else type(self._authoritative).__name__,
        )

    @staticmethod
    def _pick_authoritative(references: Sequence[Reference]) -> Reference:
        for kind in _PRIORITY:
            for ref in references:
                if isinstance(ref, kind):
                    return ref
        return references[0]

    def _times_from_authoritative(self) -> np.ndarray:
        start, end = self._valid_time_range
        times = np.asarray(self._authoritative.times)
        inside = np.array([_within(t, start, end) for t in times], dtype=bool)
        selected = np.array(times[inside])
        if len(selected) == 0:
            raise ValueError(
                f"No sample of the {type(self._authoritative).__name__} lies in "
                f"the valid time range [{start}, {end}]"
            )
        return selected

    def _validate_times(self, times: Sequence[float]) -> np.ndarray:
        times = np.array(times, dtype=np.float64)
        if times.ndim != 1 or len(times) == 0:
            raise ValueError("Explicit times must be a non-empty 1D sequence")
        if not np.all(np.isfinite(times)):
            raise ValueError("Explicit times must be finite")
        if len(times) > 1 and np.any(np.diff(times) <= 0.0):
            raise ValueError("Explicit times must be strictly increasing")
        start, end = self._valid_time_range
        outside = [float(t) for t in times if not _within(t, start, end)]
        if outside:
            raise ValueError(
                f"Explicit times outside the valid range [{start}, {end}]: {outside[:5]}"
            )
        return times

    def _check_regular_sampling(self) -> None:
        if len(self._sample_times) < 3:
            return
        dt = np.diff(self._sample_times)
        median = float(np.median(dt))
        spread = float(np.max(np.abs(dt - median)))
        if spread > IRREGULAR_SAMPLING_TOLERANCE * median:
            warnings.warn(
                f"Irregular sampling: intervals deviate by up to {spread:.3g}s "
                f"from the median {median:.3g}s; the data rate is nominal only.",
                UserWarning,
                stacklevel=3,
            )

    @property
    def references(self) -> List[Reference]:
        return list(self._references)

    @property
    def authoritative_reference(self) -> Reference:
        return self._authoritative

    @property
    def valid_time_range(self) -> Tuple[float, float]:
        return self._valid_time_range

    @property
    def sample_times(self) -> np.ndarray:
        return self._sample_times

    @property
    def data_rate(self) -> float:
        """Sampling rate of the sample times (NaN for a single sample)."""
        if len(self._sample_times) < 2:
            return float("nan")
        return compute_sampling_rate(self._sample_times)


def _within(time: float, start: float, end: float) -> bool:
    slack = TIME_TOLERANCE * max(1.0, abs(start), abs(end))
    return start - slack <= time <= end + slack
