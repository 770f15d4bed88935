"""Unit tests for named time series, unit conversion and CSV persistence."""

import unittest

import numpy as np
import pytest
from numpy.testing import assert_allclose

from iktrack.tables import (
    NamedTimeSeries,
    compute_sampling_rate,
    convert_angle_table_to_radians,
    convert_rotational_columns_to_degrees,
    convert_rotational_columns_to_radians,
    load_time_series_csv,
    save_time_series_csv,
)


def _scenario_table():
    return NamedTimeSeries.from_columns(
        [0.0, 0.01, 0.02],
        {"hip_flexion": [0.0, 10.0, 20.0], "pelvis_tx": [0.0, 0.1, 0.2]},
        metadata={"units": "degrees", "data_rate": 100.0},
    )


class TestNamedTimeSeries(unittest.TestCase):

    def test_basic_properties(self):
        table = _scenario_table()

        self.assertEqual(table.value_kind, "scalar")
        self.assertEqual(table.num_rows, 3)
        self.assertEqual(table.num_columns, 2)
        self.assertEqual(table.time_range, (0.0, 0.02))
        self.assertAlmostEqual(table.sampling_rate, 100.0)
        self.assertTrue(table.is_in_degrees)
        assert_allclose(table.get_column("pelvis_tx"), [0.0, 0.1, 0.2])

    def test_times_must_increase(self):
        with self.assertRaises(ValueError):
            NamedTimeSeries([0.0, 0.0, 0.1], np.zeros((3, 1)), ("a",))
        with self.assertRaises(ValueError):
            NamedTimeSeries([0.1, 0.0], np.zeros((2, 1)), ("a",))

    def test_labels_must_be_unique(self):
        with self.assertRaises(ValueError):
            NamedTimeSeries([0.0, 0.1], np.zeros((2, 2)), ("a", "a"))

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            NamedTimeSeries([0.0, 0.1], np.zeros((3, 1)), ("a",))
        with self.assertRaises(ValueError):
            NamedTimeSeries([0.0, 0.1], np.zeros((2, 2)), ("a",))

    def test_value_kinds(self):
        times = [0.0, 0.1]
        self.assertEqual(NamedTimeSeries(times, np.zeros((2, 1, 3)), ("m",)).value_kind, "vec3")
        self.assertEqual(
            NamedTimeSeries(times, np.zeros((2, 1, 4)), ("q",)).value_kind, "quaternion")
        self.assertEqual(
            NamedTimeSeries(times, np.zeros((2, 1, 3, 3)), ("R",)).value_kind, "rotation")

    def test_single_column_vector_data(self):
        table = NamedTimeSeries([0.0, 0.1, 0.2], [1.0, 2.0, 3.0], ("a",))
        self.assertEqual(table.data.shape, (3, 1))

    def test_arrays_are_read_only(self):
        table = _scenario_table()
        with self.assertRaises(ValueError):
            table.data[0, 0] = 5.0
        with self.assertRaises(ValueError):
            table.times[0] = 5.0

    def test_missing_column(self):
        with self.assertRaises(KeyError):
            _scenario_table().get_column("knee")

    def test_select_and_rename(self):
        table = _scenario_table()
        selected = table.select_columns(["pelvis_tx"])
        self.assertEqual(selected.column_labels, ("pelvis_tx",))

        renamed = table.rename_columns({"hip_flexion": "hip_flex"})
        self.assertEqual(renamed.column_labels, ("hip_flex", "pelvis_tx"))
        assert_allclose(renamed.data, table.data)

    def test_nearest_row_index(self):
        self.assertEqual(_scenario_table().nearest_row_index(0.012), 1)


class TestSamplingRate:

    def test_rate(self):
        assert compute_sampling_rate(np.array([0.0, 0.5, 1.0, 1.5])) == pytest.approx(2.0)

    def test_too_few_samples(self):
        with pytest.raises(ValueError):
            compute_sampling_rate(np.array([0.0]))


class TestUnitConversion(unittest.TestCase):

    def test_only_rotational_columns_converted(self):
        rad = convert_rotational_columns_to_radians(_scenario_table(), ["hip_flexion"])

        assert_allclose(rad.get_column("hip_flexion"), np.deg2rad([0.0, 10.0, 20.0]))
        assert_allclose(rad.get_column("pelvis_tx"), [0.0, 0.1, 0.2])
        self.assertFalse(rad.is_in_degrees)
        self.assertEqual(rad.metadata["units"], "radians")
        self.assertEqual(rad.metadata["data_rate"], 100.0)

    def test_round_trip_through_degrees(self):
        table = _scenario_table()
        rad = convert_rotational_columns_to_radians(table, ["hip_flexion"])
        deg = convert_rotational_columns_to_degrees(rad, ["hip_flexion"])

        assert_allclose(deg.data, table.data, atol=1e-12)
        self.assertTrue(deg.is_in_degrees)

    def test_no_rotational_column_keeps_units(self):
        table = _scenario_table()
        for convert in (convert_rotational_columns_to_radians,
                        convert_rotational_columns_to_degrees):
            result = convert(table, ["knee_angle"])
            self.assertIs(result, table)
            self.assertTrue(result.is_in_degrees)

    def test_input_not_modified(self):
        table = _scenario_table()
        convert_rotational_columns_to_radians(table, ["hip_flexion"])
        assert_allclose(table.get_column("hip_flexion"), [0.0, 10.0, 20.0])

    def test_angle_table_conversion(self):
        euler = NamedTimeSeries([0.0, 0.1], np.full((2, 1, 3), 90.0), ("pelvis",),
                                metadata={"in_degrees": True})
        rad = convert_angle_table_to_radians(euler)
        assert_allclose(rad.data, np.full((2, 1, 3), np.pi / 2))
        self.assertIs(convert_angle_table_to_radians(rad), rad)

    def test_non_scalar_rejected(self):
        vec = NamedTimeSeries([0.0, 0.1], np.zeros((2, 1, 3)), ("m",))
        with self.assertRaises(ValueError):
            convert_rotational_columns_to_radians(vec, ["m"])


class TestCsvPersistence:

    def test_save_and_load(self, tmp_path):
        table = _scenario_table()
        path = save_time_series_csv(table, tmp_path / "sub" / "coords.csv")
        loaded = load_time_series_csv(path)

        assert loaded.column_labels == table.column_labels
        assert_allclose(loaded.times, table.times)
        assert_allclose(loaded.data, table.data)
        assert loaded.metadata["units"] == "degrees"
        assert loaded.metadata["data_rate"] == pytest.approx(100.0)
        assert loaded.is_in_degrees

    def test_nan_values_survive(self, tmp_path):
        table = NamedTimeSeries([0.0, 0.1], [[1.0], [np.nan]], ("x",))
        loaded = load_time_series_csv(save_time_series_csv(table, tmp_path / "x.csv"))
        assert np.isnan(loaded.data[1, 0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_time_series_csv(tmp_path / "nope.csv")

    def test_missing_header(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("# units: m\nframe,x\n0,1\n")
        with pytest.raises(ValueError):
            load_time_series_csv(path)

    def test_times_restored_exactly(self, tmp_path):
        times = np.array([0.0, 1.0 / 3.0, 0.6666667, 1.0000001234567])
        table = NamedTimeSeries(times, np.arange(4.0) / 7.0, ("x",))
        loaded = load_time_series_csv(save_time_series_csv(table, tmp_path / "t.csv"))

        np.testing.assert_array_equal(loaded.times, times)
        np.testing.assert_array_equal(loaded.data, table.data)

    def test_vec3_table_round_trip(self, tmp_path):
        rng = np.random.default_rng(3)
        data = rng.normal(size=(5, 2, 3))
        data[2, 1] = np.nan
        table = NamedTimeSeries(np.arange(5) * 0.01, data, ("pelvis", "femur_r"),
                                metadata={"units": "radians"})
        path = save_time_series_csv(table, tmp_path / "orientations.csv")

        header = [line for line in path.read_text().splitlines() if line.startswith("time")]
        assert header == ["time,pelvis_x,pelvis_y,pelvis_z,femur_r_x,femur_r_y,femur_r_z"]

        loaded = load_time_series_csv(path)
        assert loaded.value_kind == "vec3"
        assert loaded.column_labels == ("pelvis", "femur_r")
        assert "value_kind" not in loaded.metadata
        assert not loaded.is_in_degrees
        np.testing.assert_array_equal(loaded.data, data)

    def test_quaternion_table_round_trip(self, tmp_path):
        quats = np.tile([1.0, 0.0, 0.0, 0.0], (2, 1, 1))
        table = NamedTimeSeries([0.0, 0.1], quats, ("pelvis",))
        loaded = load_time_series_csv(save_time_series_csv(table, tmp_path / "q.csv"))

        assert loaded.value_kind == "quaternion"
        assert_allclose(loaded.data, quats)

    def test_rotation_table_cannot_be_saved(self, tmp_path):
        rot = NamedTimeSeries([0.0, 0.1], np.tile(np.eye(3), (2, 1, 1, 1)), ("pelvis",))
        with pytest.raises(ValueError):
            save_time_series_csv(rot, tmp_path / "r.csv")

    def test_mismatched_component_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("# value_kind: vec3\ntime,m_x,m_y,n_z\n0,1,2,3\n")
        with pytest.raises(ValueError):
            load_time_series_csv(path)


if __name__ == "__main__":
    unittest.main()
