"""Unit tests for bounded nonlinear least squares.

Test cases include:
- Convergence on consistent problems (range positioning, Rosenbrock)
- Active bounds: solution pinned at the bound, still converged
- Tight tolerances: converged always means the residual or the projected
  gradient criterion holds
- Iteration counting and the max-iteration outcome
- Finite-difference Jacobians, including one-sided steps at bounds
"""

import unittest

import numpy as np
import pytest

from iktrack.estimators import (
    bounded_levenberg_marquardt,
    numerical_jacobian,
    solve_bounded_ls,
    trust_region_reflective,
)

ANCHORS = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]])
TRUE_POSITION = np.array([3.0, 4.0])
RANGES = np.linalg.norm(ANCHORS - TRUE_POSITION, axis=1)


def range_residuals(x):
    return np.linalg.norm(ANCHORS - x, axis=1) - RANGES


def rosenbrock_residuals(x):
    return np.array([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])


class TestBoundedLevenbergMarquardt(unittest.TestCase):

    def test_range_positioning(self) -> None:
        result = bounded_levenberg_marquardt(
            range_residuals, np.array([8.0, 8.0]), lower=[0.0, 0.0], upper=[10.0, 10.0])

        self.assertTrue(result.converged)
        np.testing.assert_allclose(result.x, TRUE_POSITION, atol=1e-6)
        self.assertLess(result.residual_norm, 1e-6)
        self.assertAlmostEqual(result.cost, 0.5 * result.residual_norm ** 2)

    def test_rosenbrock(self) -> None:
        result = bounded_levenberg_marquardt(rosenbrock_residuals, np.array([-1.2, 1.0]),
                                             max_iter=200)
        self.assertTrue(result.converged)
        np.testing.assert_allclose(result.x, [1.0, 1.0], atol=1e-6)

    def test_active_bound(self) -> None:
        result = bounded_levenberg_marquardt(
            lambda x: x - 5.0, np.array([0.0]), lower=[-10.0], upper=[3.0])

        self.assertTrue(result.converged)
        self.assertEqual(result.status, "gradient")
        self.assertEqual(result.iterations, 1)
        np.testing.assert_allclose(result.x, [3.0])
        self.assertAlmostEqual(result.residual_norm, 2.0)

    def test_inconsistent_data_stops_at_stationary_point(self) -> None:
        result = bounded_levenberg_marquardt(
            lambda x: np.array([x[0] - 1.0, x[0] - 3.0]), np.array([0.0]))

        self.assertTrue(result.converged)
        self.assertEqual(result.status, "gradient")
        np.testing.assert_allclose(result.x, [2.0], atol=1e-8)
        self.assertAlmostEqual(result.residual_norm, np.sqrt(2.0))

    def test_initial_guess_outside_bounds_is_clipped(self) -> None:
        result = bounded_levenberg_marquardt(
            lambda x: x - 1.0, np.array([5.0]), lower=[0.0], upper=[2.0])
        self.assertTrue(result.converged)
        np.testing.assert_allclose(result.x, [1.0], atol=1e-8)

    def test_already_solved_takes_no_iterations(self) -> None:
        result = bounded_levenberg_marquardt(range_residuals, TRUE_POSITION.copy())

        self.assertEqual(result.iterations, 0)
        self.assertEqual(result.status, "residual")
        self.assertTrue(result.converged)

    def test_iteration_budget_exhausted(self) -> None:
        result = bounded_levenberg_marquardt(rosenbrock_residuals, np.array([-1.2, 1.0]),
                                             max_iter=1)
        self.assertFalse(result.converged)
        self.assertEqual(result.status, "max_iter")
        self.assertEqual(result.iterations, 1)

        result = bounded_levenberg_marquardt(rosenbrock_residuals, np.array([-1.2, 1.0]),
                                             max_iter=0)
        self.assertFalse(result.converged)
        self.assertEqual(result.iterations, 0)

    def test_analytic_jacobian(self) -> None:
        def jac(x):
            return np.array([[-20.0 * x[0], 10.0], [-1.0, 0.0]])

        result = bounded_levenberg_marquardt(rosenbrock_residuals, np.array([-1.2, 1.0]),
                                             jacobian=jac, max_iter=200)
        np.testing.assert_allclose(result.x, [1.0, 1.0], atol=1e-6)

    def test_invalid_arguments(self) -> None:
        with self.assertRaises(ValueError):
            bounded_levenberg_marquardt(range_residuals, np.zeros(2), lower=[1.0, 0.0],
                                        upper=[0.0, 1.0])
        with self.assertRaises(ValueError):
            bounded_levenberg_marquardt(range_residuals, np.zeros(2), lower=[0.0])
        with self.assertRaises(ValueError):
            bounded_levenberg_marquardt(range_residuals, np.zeros((2, 1)))
        with self.assertRaises(ValueError):
            bounded_levenberg_marquardt(range_residuals, np.ones(2), jacobian=lambda x: np.eye(2))


class TestTrustRegionReflective(unittest.TestCase):

    def test_rosenbrock(self) -> None:
        result = trust_region_reflective(rosenbrock_residuals, np.array([-1.2, 1.0]),
                                         max_iter=200)
        self.assertTrue(result.converged)
        np.testing.assert_allclose(result.x, [1.0, 1.0], atol=1e-5)

    def test_active_bound(self) -> None:
        result = trust_region_reflective(
            lambda x: x - 5.0, np.array([0.0]), lower=[-10.0], upper=[3.0], max_iter=100)
        self.assertTrue(result.converged)
        np.testing.assert_allclose(result.x, [3.0], atol=1e-3)
        self.assertEqual(result.status, "gradient")

    def test_already_solved(self) -> None:
        result = trust_region_reflective(range_residuals, TRUE_POSITION.copy())
        self.assertEqual(result.iterations, 0)
        self.assertTrue(result.converged)


class TestTightTolerance:

    TARGET = np.array([0.01, 0.1])

    @pytest.mark.parametrize("method", ["lm", "trf"])
    @pytest.mark.parametrize("tol", [1e-6, 1e-8, 1e-10, 1e-12])
    def test_linear_targets_reach_tolerance(self, method, tol):
        result = solve_bounded_ls(lambda x: x - self.TARGET, np.zeros(2),
                                  lower=[-1.0, -np.pi], upper=[1.0, np.pi],
                                  method=method, max_iter=50, tol=tol)

        assert result.converged
        assert result.status == "residual"
        assert result.residual_norm <= tol
        np.testing.assert_allclose(result.x, self.TARGET, atol=10 * tol)

    def test_convergence_flag_matches_criteria(self):
        tol = 1e-8
        for max_iter in range(0, 6):
            result = bounded_levenberg_marquardt(lambda x: x - self.TARGET, np.zeros(2),
                                                 max_iter=max_iter, tol=tol)
            assert result.converged == (result.residual_norm <= tol)


class TestSolveDispatch:

    @pytest.mark.parametrize("method", ["lm", "trf"])
    def test_methods_agree(self, method):
        result = solve_bounded_ls(range_residuals, np.array([8.0, 8.0]),
                                  lower=np.zeros(2), upper=np.full(2, 10.0),
                                  method=method, max_iter=100)
        assert result.converged
        np.testing.assert_allclose(result.x, TRUE_POSITION, atol=1e-5)

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            solve_bounded_ls(range_residuals, np.zeros(2), method="gauss-newton")


class TestNumericalJacobian:

    def test_matches_analytic(self):
        x = np.array([0.3, -0.7])
        J = numerical_jacobian(rosenbrock_residuals, x)
        expected = np.array([[-20.0 * x[0], 10.0], [-1.0, 0.0]])
        np.testing.assert_allclose(J, expected, atol=1e-6)

    def test_one_sided_at_bounds(self):
        def fn(x):
            return np.array([x[0] ** 2, np.sin(x[1])])

        x = np.array([1.0, 0.0])
        J = numerical_jacobian(fn, x, lower=[0.0, -1.0], upper=[1.0, 0.0])
        np.testing.assert_allclose(J, [[2.0, 0.0], [0.0, 1.0]], atol=1e-5)

    def test_never_evaluates_outside_bounds(self):
        lower = np.array([0.0])
        upper = np.array([1.0])
        seen = []

        def fn(x):
            seen.append(x[0])
            return np.array([x[0]])

        numerical_jacobian(fn, np.array([0.0]), lower=lower, upper=upper)
        numerical_jacobian(fn, np.array([1.0]), lower=lower, upper=upper)
        assert all(0.0 <= value <= 1.0 for value in seen)


if __name__ == "__main__":
    unittest.main()
