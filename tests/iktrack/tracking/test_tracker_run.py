"""Unit tests for the run driver, the coordinate reporter and solver configuration."""

import json
import unittest

import numpy as np
import pytest
from numpy.testing import assert_allclose

from iktrack.model import Coordinate, MotionType, PoseState, SkeletonModel
from iktrack.tables import NamedTimeSeries
from iktrack.tracking import (
    PRESETS,
    CoordinateReference,
    CoordinateReporter,
    IKSolver,
    IKSolverConfig,
    TrackingFailure,
    track_time_series,
)


def _hip_model():
    model = SkeletonModel("hip")
    model.add_body("pelvis", coordinates=[
        Coordinate("pelvis_tx", MotionType.TRANSLATIONAL, [1, 0, 0])])
    model.add_body("femur", parent="pelvis", coordinates=[
        Coordinate("hip_flexion", MotionType.ROTATIONAL, [0, 0, 1])])
    return model


def _solver(model, **config):
    table = NamedTimeSeries.from_columns(
        [0.0, 0.01, 0.02],
        {"pelvis_tx": [0.0, 0.01, 0.02], "hip_flexion": [0.0, 0.1, 0.2]},
    )
    config.setdefault("accuracy", 1e-8)
    return IKSolver(model, coordinate_references=[CoordinateReference(model, table)],
                    config=IKSolverConfig(**config))


class TestTrackTimeSeries(unittest.TestCase):

    def test_every_sample_solved(self):
        model = _hip_model()
        run = track_time_series(_solver(model), model.init_state())

        self.assertEqual(run.n_frames, 3)
        self.assertEqual(run.outcomes[0].phase, "assembly")
        self.assertTrue(all(o.phase == "tracking" for o in run.outcomes[1:]))
        self.assertEqual(run.n_failures, 0)
        self.assertEqual(run.success_rate, 1.0)
        self.assertGreater(run.total_iterations, 0)
        self.assertLessEqual(run.max_residual_norm, 1e-8)

        table = run.coordinates
        self.assertEqual(table.column_labels, ("pelvis_tx", "hip_flexion"))
        assert_allclose(table.times, [0.0, 0.01, 0.02])
        assert_allclose(table.get_column("hip_flexion"), [0.0, 0.1, 0.2], atol=1e-6)
        self.assertEqual(table.metadata["units"], "radians")
        self.assertIn("Frames solved:      3", run.summary())

    def test_explicit_times_and_progress_bar(self):
        model = _hip_model()
        run = track_time_series(_solver(model), model.init_state(),
                                times=[0.0, 0.005, 0.01], show_progress=True)
        assert_allclose(run.coordinates.get_column("pelvis_tx"), [0.0, 0.005, 0.01], atol=1e-6)

    def test_degrees_reporter(self):
        model = _hip_model()
        reporter = CoordinateReporter(model, in_degrees=True)
        run = track_time_series(_solver(model), model.init_state(), reporter=reporter)

        table = run.coordinates
        self.assertTrue(table.is_in_degrees)
        assert_allclose(table.get_column("hip_flexion"), np.rad2deg([0.0, 0.1, 0.2]), atol=1e-4)
        assert_allclose(table.get_column("pelvis_tx"), [0.0, 0.01, 0.02], atol=1e-6)
        self.assertAlmostEqual(table.metadata["data_rate"], 100.0)

    def test_failures_are_collected(self):
        model = _hip_model()
        solver = _solver(model, accuracy=1e-6, tracking_max_iterations=1)
        run = track_time_series(solver, model.init_state())

        self.assertEqual(run.n_frames, 3)
        self.assertEqual(run.n_failures, 2)
        self.assertAlmostEqual(run.success_rate, 1.0 / 3.0)
        self.assertEqual([f.time for f in run.tracking_failures], [0.01, 0.02])
        self.assertIn("t=0.0100s", run.summary())

    def test_strict_run_stops_at_first_failure(self):
        model = _hip_model()
        solver = _solver(model, accuracy=1e-6, tracking_max_iterations=1, strict=True)
        with self.assertRaises(TrackingFailure):
            track_time_series(solver, model.init_state())


class TestCoordinateReporter(unittest.TestCase):

    def test_record_and_clear(self):
        model = _hip_model()
        reporter = CoordinateReporter(model)
        reporter.record(PoseState([0.0, 0.1], time=0.0))
        reporter.record(PoseState([0.1, 0.2], time=0.5))

        self.assertEqual(len(reporter), 2)
        assert_allclose(reporter.times, [0.0, 0.5])
        table = reporter.get_table()
        assert_allclose(table.data, [[0.0, 0.1], [0.1, 0.2]])
        self.assertAlmostEqual(table.metadata["data_rate"], 2.0)

        reporter.clear()
        self.assertEqual(len(reporter), 0)
        with self.assertRaises(ValueError):
            reporter.get_table()

    def test_times_must_increase(self):
        reporter = CoordinateReporter(_hip_model())
        reporter.record(PoseState([0.0, 0.0], time=0.1))
        with self.assertRaises(ValueError):
            reporter.record(PoseState([0.0, 0.0], time=0.1))

    def test_wrong_state_size(self):
        with self.assertRaises(ValueError):
            CoordinateReporter(_hip_model()).record(PoseState([0.0]))

    def test_single_row_has_no_rate(self):
        reporter = CoordinateReporter(_hip_model())
        reporter.record(PoseState([0.0, 0.0]))
        self.assertNotIn("data_rate", reporter.get_table().metadata)


class TestSolverConfig:

    @pytest.mark.parametrize("name", list(PRESETS))
    def test_presets_load(self, name):
        config = IKSolverConfig.from_preset(name)
        assert config.accuracy == PRESETS[name]["accuracy"]
        assert config.method in ("lm", "trf")

    def test_overrides(self):
        config = IKSolverConfig.from_preset("fast", strict=True, tracking_max_iterations=5)
        assert config.strict
        assert config.tracking_max_iterations == 5
        assert config.accuracy == 1e-3

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            IKSolverConfig.from_preset("turbo")
        with pytest.raises(ValueError):
            IKSolverConfig.from_dict({"accuracy": 1e-4, "tolerance": 1e-3})
        with pytest.raises(ValueError):
            IKSolverConfig(accuracy=0.0)
        with pytest.raises(ValueError):
            IKSolverConfig(method="newton")
        with pytest.raises(ValueError):
            IKSolverConfig(tracking_max_iterations=0)

    def test_json_round_trip(self, tmp_path):
        original = IKSolverConfig(accuracy=1e-5, tracking_max_iterations=20, strict=True)
        path = tmp_path / "solver.json"
        path.write_text(json.dumps(dict(original.to_dict(), description="test run")))

        assert IKSolverConfig.from_json(path) == original


if __name__ == "__main__":
    unittest.main()
