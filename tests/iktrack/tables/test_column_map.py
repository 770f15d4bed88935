"""Unit tests for column mapping between data channels and model entities."""

import unittest
import warnings

import numpy as np
import pytest

from iktrack.errors import MappingFailure
from iktrack.tables.column_map import UNMATCHED, ColumnMap, map_columns, require_matches


class TestMapColumns(unittest.TestCase):
    """Exact, case-sensitive name matching in entity order."""

    def test_full_match_in_entity_order(self):
        cmap = map_columns(["hip_flexion", "pelvis_tx"], ["pelvis_tx", "hip_flexion"])

        np.testing.assert_array_equal(cmap.indices, [1, 0])
        self.assertTrue(cmap.is_fully_matched)
        self.assertEqual(cmap.n_matched, 2)

    def test_missing_column_is_unmatched(self):
        cmap = map_columns(["hip_flexion", "knee_angle"], ["knee_angle", "time_ms"])

        self.assertEqual(cmap.as_dict(), {"hip_flexion": UNMATCHED, "knee_angle": 0})
        self.assertEqual(cmap.unmatched_entities, ["hip_flexion"])
        self.assertEqual(cmap.matched_entities, ["knee_angle"])
        self.assertEqual(cmap.unused_columns, ["time_ms"])

    def test_matching_is_case_sensitive(self):
        cmap = map_columns(["Knee_Angle"], ["knee_angle"])
        self.assertEqual(cmap.index_of("Knee_Angle"), UNMATCHED)

    def test_duplicate_label_uses_first_occurrence(self):
        with self.assertWarns(UserWarning):
            cmap = map_columns(["knee"], ["knee", "hip", "knee"])
        self.assertEqual(cmap.index_of("knee"), 0)

    def test_duplicate_entities_rejected(self):
        with self.assertRaises(ValueError):
            map_columns(["knee", "knee"], ["knee"])

    def test_matched_pairs(self):
        cmap = map_columns(["a", "b", "c"], ["c", "a"])
        self.assertEqual(cmap.matched_pairs(), [(0, 1), (2, 0)])

    def test_index_of_unknown_entity(self):
        cmap = map_columns(["a"], ["a"])
        with self.assertRaises(KeyError):
            cmap.index_of("z")

    def test_indices_read_only(self):
        cmap = map_columns(["a"], ["a"])
        with self.assertRaises(ValueError):
            cmap.indices[0] = 3

    def test_empty_labels(self):
        cmap = map_columns(["a", "b"], [])
        self.assertEqual(cmap.n_matched, 0)
        np.testing.assert_array_equal(cmap.indices, [UNMATCHED, UNMATCHED])


class TestColumnMapInvariants:
    """Every entry is a valid column or UNMATCHED; columns used at most once."""

    @pytest.mark.parametrize(
        "entities, labels",
        [
            (["a", "b", "c"], ["c", "b", "a"]),
            (["a", "b", "c"], ["x", "b", "y", "z"]),
            (["a"], ["b", "c"]),
            (["a", "b"], ["a", "a", "b"]),
        ],
    )
    def test_entries_valid(self, entities, labels):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            cmap = map_columns(entities, labels)

        for idx in cmap.indices:
            assert idx == UNMATCHED or 0 <= idx < len(labels)
        matched = [i for i in cmap.indices if i != UNMATCHED]
        assert len(matched) == len(set(matched))

    def test_constructor_rejects_shared_column(self):
        with pytest.raises(ValueError):
            ColumnMap(("a", "b"), ("x",), np.array([0, 0]))

    def test_constructor_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            ColumnMap(("a",), ("x",), np.array([3]))


class TestRequireMatches(unittest.TestCase):

    def test_zero_matches_raises_mapping_failure(self):
        cmap = map_columns(["pelvis", "femur_r"], ["imu_1", "imu_2"])

        with self.assertRaises(MappingFailure) as ctx:
            require_matches(cmap, what="bodies")

        self.assertEqual(ctx.exception.what, "bodies")
        self.assertEqual(ctx.exception.column_labels, ("imu_1", "imu_2"))
        self.assertIn("imu_1", str(ctx.exception))

    def test_partial_match_passes_through(self):
        cmap = map_columns(["pelvis", "femur_r"], ["pelvis"])
        self.assertIs(require_matches(cmap), cmap)


if __name__ == "__main__":
    unittest.main()
