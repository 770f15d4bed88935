"""
Bounded nonlinear least squares for pose estimation.

Inverse kinematics at one instant is a weighted nonlinear least-squares
problem over the model coordinates, with box constraints given by the
coordinate ranges:

    q̂ = argmin ½‖f(q)‖²   subject to  lower ≤ q ≤ upper

where f(q) stacks the (already weighted) residuals of every reference
channel. Two solvers are provided:

    - "lm":  Levenberg-Marquardt with projection onto the box. Each trial
             step solves (JᵀJ + μI) Δq = -Jᵀf, is clipped into the bounds,
             and is accepted when the gain ratio of the clipped step is
             positive. μ adapts as in Algorithm 3.2 (Nielsen's update).
    - "trf": scipy.optimize.least_squares trust-region reflective method.

Convergence (both methods):
    - ‖f(q)‖ ≤ tol ("residual"), or
    - the projected gradient satisfies ‖q - P(q - Jᵀf)‖_∞ ≤ tol·‖f(q)‖
      ("gradient"): the residual is orthogonal to every feasible direction,
      as at the minimum of inconsistent data or a solution pinned at a bound.
Running out of iterations ("max_iter") or a damping parameter that saturates
without a cost decrease ("stalled") is reported as not converged.
"""

from dataclasses import dataclass
from typing import Callable, Literal, Optional

import numpy as np
from scipy.optimize import least_squares

ResidualFn = Callable[[np.ndarray], np.ndarray]
JacobianFn = Callable[[np.ndarray], np.ndarray]

MU_MAX = 1e10

# scipy terminates on its own only near machine precision
TRF_GTOL = 1e-15

CONVERGED_STATUSES = ("residual", "gradient")


@dataclass
class BoundedLSResult:
    """Result container for bounded least squares.

    Attributes:
        x: Estimated parameter vector (inside the bounds).
        iterations: Number of steps taken (0 when x0 already satisfies tol).
        residuals: Final residual vector f(x̂).
        cost: Final cost ½‖f(x̂)‖².
        residual_norm: ‖f(x̂)‖.
        converged: Whether one of the convergence criteria was met.
        status: "residual", "gradient", "stalled" or "max_iter".
    """

    x: np.ndarray
    iterations: int
    residuals: np.ndarray
    cost: float
    residual_norm: float
    converged: bool
    status: str


def _prepare_bounds(x0: np.ndarray, lower, upper):
    n = len(x0)
    lb = np.full(n, -np.inf) if lower is None else np.asarray(lower, dtype=np.float64)
    ub = np.full(n, np.inf) if upper is None else np.asarray(upper, dtype=np.float64)
    if lb.shape != (n,) or ub.shape != (n,):
        raise ValueError(f"Bounds must have shape ({n},), got {lb.shape} and {ub.shape}")
    if np.any(lb >= ub):
        raise ValueError("Each lower bound must be strictly less than its upper bound")
    return lb, ub


def projected_gradient_norm(x: np.ndarray, g: np.ndarray, lb: np.ndarray, ub: np.ndarray) -> float:
    """
    First-order stationarity measure for box-constrained problems.

    Returns ‖x - P(x - g)‖_∞, where P projects onto [lb, ub] and g = Jᵀf is the
    gradient of ½‖f‖². Components pushing against an active bound do not count.
    """
    return float(np.max(np.abs(x - np.clip(x - g, lb, ub)), initial=0.0))


def numerical_jacobian(
    fn: ResidualFn,
    x: np.ndarray,
    f0: Optional[np.ndarray] = None,
    lower: Optional[np.ndarray] = None,
    upper: Optional[np.ndarray] = None,
    rel_step: float = 1e-6,
) -> np.ndarray:
    """
    Finite-difference Jacobian ∂f/∂x.

    Central differences are used where both neighbours are inside the
    bounds, one-sided differences next to a bound.

    Args:
        fn: Residual function R^n → R^m.
        x: Evaluation point (n,).
        f0: fn(x) if already known.
        lower: Optional lower bounds (n,).
        upper: Optional upper bounds (n,).
        rel_step: Relative step size.

    Returns:
        Jacobian matrix (m × n).
    """
    x = np.asarray(x, dtype=np.float64)
    if f0 is None:
        f0 = np.asarray(fn(x), dtype=np.float64)
    lb, ub = _prepare_bounds(x, lower, upper)

    J = np.empty((len(f0), len(x)))
    for j in range(len(x)):
        h = rel_step * max(1.0, abs(x[j]))
        forward_ok = x[j] + h <= ub[j]
        backward_ok = x[j] - h >= lb[j]

        x_plus = x.copy()
        x_minus = x.copy()
        if forward_ok and backward_ok:
            x_plus[j] += h
            x_minus[j] -= h
            J[:, j] = (fn(x_plus) - fn(x_minus)) / (2.0 * h)
        elif forward_ok:
            x_plus[j] += h
            J[:, j] = (fn(x_plus) - f0) / h
        else:
            x_minus[j] -= h
            J[:, j] = (f0 - fn(x_minus)) / h
    return J


def bounded_levenberg_marquardt(
    fn: ResidualFn,
    x0: np.ndarray,
    lower: Optional[np.ndarray] = None,
    upper: Optional[np.ndarray] = None,
    jacobian: Optional[JacobianFn] = None,
    max_iter: int = 50,
    tol: float = 1e-8,
    mu0: float = 1e-3,
) -> BoundedLSResult:
    """
    Levenberg-Marquardt with box constraints.

    Solves: x̂ = argmin ½‖f(x)‖²  subject to lower ≤ x ≤ upper

    Each iteration solves the damped normal equations
        (JᵀJ + μI) Δx = -Jᵀf
    and projects x + Δx onto the box. The gain ratio compares the actual cost
    decrease of the projected step with the decrease predicted by the
    linearized model ½‖f + J s‖².

    Args:
        fn: Residual function R^n → R^m (weights already applied).
        x0: Initial estimate (n,). Clipped into the bounds.
        lower: Lower bounds (n,), or None for unbounded.
        upper: Upper bounds (n,), or None for unbounded.
        jacobian: Function returning ∂f/∂x (m × n). Finite differences if None.
        max_iter: Maximum number of iterations.
        tol: Tolerance on ‖f‖ and on the projected gradient relative to ‖f‖.
        mu0: Initial damping parameter.

    Returns:
        BoundedLSResult.

    Example:
        >>> import numpy as np
        >>> anchors = np.array([[0, 0], [10, 0], [0, 10]])
        >>> ranges = np.linalg.norm(anchors - np.array([3.0, 4.0]), axis=1)
        >>> fn = lambda x: np.linalg.norm(anchors - x, axis=1) - ranges
        >>> result = bounded_levenberg_marquardt(fn, np.array([8.0, 8.0]),
        ...                                      lower=[0, 0], upper=[10, 10])
        >>> print(f"Estimate: {result.x}, Converged: {result.converged}")
    """
    x0 = np.asarray(x0, dtype=np.float64)
    if x0.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x0.shape}")
    if max_iter < 0:
        raise ValueError(f"max_iter must be non-negative, got {max_iter}")
    if tol <= 0.0:
        raise ValueError(f"tol must be positive, got {tol}")

    lb, ub = _prepare_bounds(x0, lower, upper)
    n = len(x0)
    x = np.clip(x0, lb, ub)

    f = np.asarray(fn(x), dtype=np.float64)
    if f.ndim != 1:
        raise ValueError(f"fn(x) must return a 1D array, got shape {f.shape}")
    cost = 0.5 * f @ f

    mu = mu0
    nu = 2.0
    status = "max_iter"
    iteration = 0

    while True:
        if np.sqrt(2.0 * cost) <= tol:
            status = "residual"
            break

        if jacobian is None:
            J = numerical_jacobian(fn, x, f, lb, ub)
        else:
            J = np.asarray(jacobian(x), dtype=np.float64)
        if J.shape != (len(f), n):
            raise ValueError(f"Jacobian shape {J.shape}, expected ({len(f)}, {n})")

        JtJ = J.T @ J
        Jtf = J.T @ f

        if projected_gradient_norm(x, Jtf, lb, ub) <= tol * np.sqrt(2.0 * cost):
            status = "gradient"
            break
        if iteration >= max_iter:
            break
        iteration += 1

        accepted = False
        while mu <= MU_MAX:
            JtJ_damped = JtJ + mu * np.eye(n)
            try:
                delta_x = np.linalg.solve(JtJ_damped, -Jtf)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(JtJ_damped, -Jtf, rcond=None)[0]

            x_new = np.clip(x + delta_x, lb, ub)
            step = x_new - x
            f_new = np.asarray(fn(x_new), dtype=np.float64)
            cost_new = 0.5 * f_new @ f_new

            linearized = f + J @ step
            predicted_decrease = cost - 0.5 * linearized @ linearized
            actual_decrease = cost - cost_new

            if predicted_decrease > 0.0 and actual_decrease > 0.0:
                gain_ratio = actual_decrease / predicted_decrease
                x, f, cost = x_new, f_new, cost_new
                mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                nu = 2.0
                accepted = True
                break

            mu = mu * nu
            nu = 2.0 * nu

        if not accepted:
            # Damping saturated without lowering the cost
            status = "stalled"
            break

    return BoundedLSResult(
        x=x,
        iterations=iteration,
        residuals=f,
        cost=float(cost),
        residual_norm=float(np.sqrt(2.0 * cost)),
        converged=status in CONVERGED_STATUSES,
        status=status,
    )


def trust_region_reflective(
    fn: ResidualFn,
    x0: np.ndarray,
    lower: Optional[np.ndarray] = None,
    upper: Optional[np.ndarray] = None,
    jacobian: Optional[JacobianFn] = None,
    max_iter: int = 50,
    tol: float = 1e-8,
) -> BoundedLSResult:
    """
    Bounded least squares via scipy.optimize.least_squares (method="trf").

    Same contract as bounded_levenberg_marquardt(); max_iter bounds the
    number of residual evaluations scipy may spend.
    """
    x0 = np.asarray(x0, dtype=np.float64)
    if x0.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x0.shape}")
    lb, ub = _prepare_bounds(x0, lower, upper)
    x = np.clip(x0, lb, ub)

    f0 = np.asarray(fn(x), dtype=np.float64)
    if np.linalg.norm(f0) <= tol:
        return BoundedLSResult(
            x=x, iterations=0, residuals=f0, cost=0.5 * float(f0 @ f0),
            residual_norm=float(np.linalg.norm(f0)), converged=True, status="residual",
        )

    if jacobian is None:
        def jacobian(z):
            return numerical_jacobian(fn, z, None, lb, ub)

    sol = least_squares(
        fn,
        x,
        jac=jacobian,
        bounds=(lb, ub),
        method="trf",
        ftol=None,
        xtol=None,
        gtol=TRF_GTOL,
        max_nfev=max(1, max_iter),
    )

    x_hat = np.clip(sol.x, lb, ub)
    f = np.asarray(sol.fun, dtype=np.float64)
    residual_norm = float(np.linalg.norm(f))
    if residual_norm <= tol:
        status = "residual"
    elif projected_gradient_norm(x_hat, sol.grad, lb, ub) <= tol * residual_norm:
        status = "gradient"
    else:
        status = "max_iter"

    iterations = sol.njev if sol.njev is not None else sol.nfev
    return BoundedLSResult(
        x=x_hat,
        iterations=int(iterations),
        residuals=f,
        cost=float(sol.cost),
        residual_norm=residual_norm,
        converged=status in CONVERGED_STATUSES,
        status=status,
    )


def solve_bounded_ls(
    fn: ResidualFn,
    x0: np.ndarray,
    lower: Optional[np.ndarray] = None,
    upper: Optional[np.ndarray] = None,
    jacobian: Optional[JacobianFn] = None,
    method: Literal["lm", "trf"] = "lm",
    max_iter: int = 50,
    tol: float = 1e-8,
) -> BoundedLSResult:
    """Dispatch to the bounded least-squares method by name."""
    if method == "lm":
        return bounded_levenberg_marquardt(fn, x0, lower, upper, jacobian, max_iter, tol)
    if method == "trf":
        return trust_region_reflective(fn, x0, lower, upper, jacobian, max_iter, tol)
    raise ValueError(f"Unknown method '{method}'. Use 'lm' or 'trf'.")
