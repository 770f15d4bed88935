"""Unit tests for time alignment of references."""

import math
import unittest
import warnings

import numpy as np
from numpy.testing import assert_allclose

from iktrack.model import Coordinate, MotionType, SkeletonModel
from iktrack.tables import NamedTimeSeries
from iktrack.tracking import (
    CoordinateReference,
    MarkersReference,
    OrientationsReference,
    TimeSeriesAligner,
    compute_valid_time_range,
)


def _leg_model():
    model = SkeletonModel("leg")
    model.add_body("thigh", coordinates=[
        Coordinate("hip_flexion", MotionType.ROTATIONAL, [0, 0, 1])])
    model.add_marker("KNEE", "thigh", [0.0, -0.4, 0.0])
    return model


def _coordinates(model, times):
    return CoordinateReference(
        model, NamedTimeSeries.from_columns(times, {"hip_flexion": np.zeros(len(times))}))


def _orientations(model, times):
    data = np.tile(np.eye(3), (len(times), 1, 1, 1))
    return OrientationsReference(model, NamedTimeSeries(times, data, ("thigh",)))


def _markers(model, times):
    data = np.zeros((len(times), 1, 3))
    return MarkersReference(model, NamedTimeSeries(times, data, ("KNEE",)))


class TestValidTimeRange(unittest.TestCase):

    def test_intersection(self):
        model = _leg_model()
        refs = [_coordinates(model, [0.0, 0.1, 0.2, 0.3]),
                _orientations(model, [0.05, 0.15, 0.25, 0.35])]
        self.assertEqual(compute_valid_time_range(refs), (0.05, 0.3))

    def test_none_entries_ignored(self):
        model = _leg_model()
        self.assertEqual(compute_valid_time_range([None, _coordinates(model, [0.0, 0.1])]),
                         (0.0, 0.1))

    def test_no_overlap(self):
        model = _leg_model()
        with self.assertRaises(ValueError):
            compute_valid_time_range([_coordinates(model, [0.0, 0.1]),
                                      _markers(model, [0.2, 0.3])])

    def test_no_reference(self):
        with self.assertRaises(ValueError):
            compute_valid_time_range([None, None])


class TestTimeSeriesAligner(unittest.TestCase):

    def test_orientation_times_are_authoritative(self):
        model = _leg_model()
        coords = _coordinates(model, [0.0, 0.1, 0.2, 0.3])
        orientations = _orientations(model, [0.05, 0.15, 0.25, 0.35])
        aligner = TimeSeriesAligner([coords, orientations])

        self.assertIs(aligner.authoritative_reference, orientations)
        assert_allclose(aligner.sample_times, [0.05, 0.15, 0.25])
        self.assertAlmostEqual(aligner.data_rate, 10.0)
        self.assertEqual(len(aligner.references), 2)

    def test_markers_before_coordinates(self):
        model = _leg_model()
        markers = _markers(model, [0.0, 0.1, 0.2])
        aligner = TimeSeriesAligner([_coordinates(model, [0.0, 0.05, 0.1, 0.15, 0.2]),
                                     markers])
        self.assertIs(aligner.authoritative_reference, markers)
        assert_allclose(aligner.sample_times, [0.0, 0.1, 0.2])

    def test_explicit_times(self):
        model = _leg_model()
        aligner = TimeSeriesAligner([_coordinates(model, [0.0, 0.1, 0.2])],
                                    times=[0.05, 0.1, 0.15])
        assert_allclose(aligner.sample_times, [0.05, 0.1, 0.15])

    def test_invalid_explicit_times(self):
        refs = [_coordinates(_leg_model(), [0.0, 0.1, 0.2])]
        with self.assertRaises(ValueError):
            TimeSeriesAligner(refs, times=[0.1, 0.3])
        with self.assertRaises(ValueError):
            TimeSeriesAligner(refs, times=[0.1, 0.1])
        with self.assertRaises(ValueError):
            TimeSeriesAligner(refs, times=[])

    def test_no_authoritative_sample_in_range(self):
        model = _leg_model()
        with self.assertRaises(ValueError):
            TimeSeriesAligner([_orientations(model, [0.0, 0.1]),
                               _coordinates(model, [0.02, 0.08])])

    def test_sample_times_read_only(self):
        aligner = TimeSeriesAligner([_coordinates(_leg_model(), [0.0, 0.1])])
        with self.assertRaises(ValueError):
            aligner.sample_times[0] = 1.0

    def test_single_sample(self):
        aligner = TimeSeriesAligner([_coordinates(_leg_model(), [0.0, 0.1])], times=[0.05])
        self.assertTrue(math.isnan(aligner.data_rate))

    def test_irregular_sampling_warns(self):
        refs = [_coordinates(_leg_model(), [0.0, 0.1, 0.2, 0.35])]
        with self.assertWarns(UserWarning):
            TimeSeriesAligner(refs)

    def test_regular_sampling_is_silent(self):
        refs = [_coordinates(_leg_model(), np.arange(5) / 100.0)]
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            TimeSeriesAligner(refs)


if __name__ == "__main__":
    unittest.main()
