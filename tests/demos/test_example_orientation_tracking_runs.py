"""Smoke tests for the IK tracking example and the dataset generator.

Runs the scripts in a subprocess with the Agg backend and validates the
machine-readable [IK_SUMMARY] JSON line:
- every frame solved, no tracking failures
- orientation tracking reproduces the baseline within 0.1 deg per coordinate
"""

import json
import os
import re
import subprocess
import sys
import unittest
from pathlib import Path
from typing import Any, Dict, Optional


def parse_ik_summary(stdout: str) -> Optional[Dict[str, Any]]:
    """Parse the [IK_SUMMARY] JSON line from script output.

    Returns:
        Parsed JSON dictionary, or None if not found.

    Raises:
        ValueError: If the summary line is malformed.
    """
    match = re.search(r'\[IK_SUMMARY\]\s*(\{.*\})', stdout)
    if not match:
        return None

    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed IK_SUMMARY JSON: {e}")


class TestExampleOrientationTrackingRuns(unittest.TestCase):

    def setUp(self):
        self.python_exe = sys.executable
        self.workspace_root = Path(__file__).parent.parent.parent
        self.env = os.environ.copy()
        self.env.update({
            "MPLBACKEND": "Agg",
            "PYTHONPATH": str(self.workspace_root),
        })

    def _run(self, args, timeout=180):
        return subprocess.run(
            [self.python_exe] + list(args),
            cwd=self.workspace_root,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=self.env,
        )

    def test_orientation_tracking(self):
        result = self._run(["-m", "demos.example_orientation_tracking",
                            "--duration", "0.1", "--no-plot"])

        self.assertEqual(result.returncode, 0, f"Script failed with stderr:\n{result.stderr}")
        self.assertIn("IK TRACKING COMPLETE", result.stdout)

        summary = parse_ik_summary(result.stdout)
        self.assertIsNotNone(summary, "Missing [IK_SUMMARY] JSON line in output")
        self.assertEqual(summary["source"], "orientations")
        self.assertEqual(summary["n_frames"], 11)
        self.assertEqual(summary["n_tracking_failures"], 0)
        self.assertEqual(summary["unmatched"], [])
        self.assertLess(summary["max_rmse_deg"], 0.1)
        self.assertTrue(summary["passed"])

    def test_marker_tracking(self):
        result = self._run(["-m", "demos.example_orientation_tracking",
                            "--source", "markers", "--duration", "0.05", "--no-plot"])

        self.assertEqual(result.returncode, 0, f"Script failed with stderr:\n{result.stderr}")
        summary = parse_ik_summary(result.stdout)
        self.assertIsNotNone(summary)
        self.assertEqual(summary["source"], "markers")
        self.assertEqual(summary["n_frames"], 6)
        self.assertEqual(summary["n_tracking_failures"], 0)
        self.assertLessEqual(summary["max_residual_norm"], 1e-4)

    def test_generated_dataset_round_trip(self):
        import tempfile

        with tempfile.TemporaryDirectory() as tmp:
            out_dir = Path(tmp) / "ik_gait"
            result = self._run([str(self.workspace_root / "scripts" /
                                    "generate_gait_kinematics_dataset.py"),
                                "--duration", "0.05", "--output", str(out_dir)])
            self.assertEqual(result.returncode, 0, f"Generator failed:\n{result.stderr}")
            self.assertTrue((out_dir / "coordinates.csv").exists())
            self.assertTrue((out_dir / "orientations.csv").exists())
            self.assertTrue((out_dir / "markers.csv").exists())

            config = json.loads((out_dir / "config.json").read_text())
            self.assertEqual(config["dataset_info"]["n_frames"], 6)
            self.assertEqual(len(config["coordinates"]), 19)

            result = self._run(["-m", "demos.example_orientation_tracking",
                                "--data", str(out_dir), "--no-plot"])
            self.assertEqual(result.returncode, 0, f"Script failed with stderr:\n{result.stderr}")
            self.assertIn("Loaded Euler angles for", result.stdout)
            summary = parse_ik_summary(result.stdout)
            self.assertEqual(summary["n_frames"], 6)
            self.assertTrue(summary["passed"])

            result = self._run(["-m", "demos.example_orientation_tracking",
                                "--data", str(out_dir), "--source", "markers", "--no-plot"])
            self.assertEqual(result.returncode, 0, f"Script failed with stderr:\n{result.stderr}")
            self.assertIn("Loaded positions for", result.stdout)
            summary = parse_ik_summary(result.stdout)
            self.assertEqual(summary["n_tracking_failures"], 0)
            self.assertLessEqual(summary["max_residual_norm"], 1e-4)


if __name__ == "__main__":
    unittest.main()
