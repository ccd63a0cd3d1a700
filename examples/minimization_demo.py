"""
Example: Nonlinear Minimization with nlmin

This example walks through the main entry points: the functional
``minimize`` wrapper, the ``Solver`` object with its escalation log,
problems with feasibility hooks, automatic differentiation through torch,
and the ``SolverError`` raised on hard failures.
"""

import numpy as np
import torch

from nlmin import (
    FunctionProblem,
    Problem,
    Solver,
    SolverError,
    TorchProblem,
    minimize,
)


def rosenbrock(x):
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosenbrock_grad(x):
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def rosenbrock_hess(x):
    return np.array(
        [
            [1200 * x[0] ** 2 - 400 * x[1] + 2, -400 * x[0]],
            [-400 * x[0], 200],
        ]
    )


class PositiveBarrier(Problem):
    """``sum(x - log(x))``; defined only for ``x > 0`` with minimizer at ones."""

    def value(self, x):
        if np.any(x <= 0):
            return np.inf
        return float(np.sum(x - np.log(x)))

    def gradient(self, x):
        return 1.0 - 1.0 / x

    def hessian(self, x):
        return np.diag(1.0 / x**2)

    def max_step_size(self, x0, x1):
        # Stop at 90% of the distance to the boundary of the positive orthant.
        step = x1 - x0
        shrinking = step < 0
        if not np.any(shrinking):
            return 1.0
        return float(min(1.0, 0.9 * np.min(-x0[shrinking] / step[shrinking])))


def example_solver_comparison():
    """Example: All solver families on the Rosenbrock function."""
    print("=" * 60)
    print("Example 1: Solver Comparison on Rosenbrock")
    print("=" * 60)

    problem = FunctionProblem(rosenbrock, grad=rosenbrock_grad, hess=rosenbrock_hess)
    for name in ["Newton", "DenseNewton", "BFGS", "L-BFGS"]:
        res = minimize(problem, [-1.2, 1.0], solver=name)
        print(
            f"{name:>12}: x = {np.round(res.x, 6)}, f = {res.fun:.2e}, "
            f"iterations = {res.nit}, escalations = {res.info.escalations}"
        )
    print()


def example_escalation():
    """Example: Newton on a double well escalates while the Hessian is indefinite."""
    print("=" * 60)
    print("Example 2: Descent-Strategy Escalation")
    print("=" * 60)

    problem = FunctionProblem(
        lambda x: float(x[0] ** 4 - x[0] ** 2),
        grad=lambda x: 4 * x**3 - 2 * x,
        hess=lambda x: np.array([[12 * x[0] ** 2 - 2]]),
    )
    solver = Solver.create({"solver": "DenseNewton"})
    x, status = solver.minimize(problem, np.array([0.1]))
    print(f"Status: {status.value}, x = {x[0]:.8f}")
    for record in solver.metrics.escalation_log:
        print(f"  iter {record.iteration}: {record.from_strategy} -> {record.to_strategy}")
    print()


def example_feasibility():
    """Example: Keeping iterates feasible with ``max_step_size``."""
    print("=" * 60)
    print("Example 3: Feasible Steps with a Barrier Objective")
    print("=" * 60)

    res = minimize(PositiveBarrier(), np.array([5.0, 0.01, 2.0]), solver="DenseNewton")
    print(f"Status: {res.status.value}")
    print(f"Solution: {np.round(res.x, 8)}")
    print(f"Shrinking steps taken: {res.info.line_search_iterations}")
    print()


def example_autograd():
    """Example: Derivatives from torch.autograd."""
    print("=" * 60)
    print("Example 4: Automatic Differentiation with Torch")
    print("=" * 60)

    def soft_l1(x: torch.Tensor) -> torch.Tensor:
        return torch.sum(torch.sqrt(1 + (x - 2.0) ** 2)) + 0.1 * torch.sum(x**2)

    res = minimize(TorchProblem(soft_l1), np.zeros(4), solver="Newton")
    print(f"Status: {res.status.value}")
    print(f"Solution: {np.round(res.x, 6)}")
    print()


def example_failure():
    """Example: Handling a hard failure."""
    print("=" * 60)
    print("Example 5: Iteration Limit as an Error")
    print("=" * 60)

    problem = FunctionProblem(rosenbrock, grad=rosenbrock_grad)
    try:
        minimize(problem, [-1.2, 1.0], solver="GradientDescent", options={"max_iterations": 10})
    except SolverError as err:
        print(f"Caught SolverError: {err.error_code.value} after {err.state.iterations} iterations")
        print(f"Energy at failure: {err.info.energy:.4f}")

    res = minimize(
        problem,
        [-1.2, 1.0],
        solver="GradientDescent",
        options={"max_iterations": 10, "allow_out_of_iterations": True},
    )
    print(f"With allow_out_of_iterations: status = {res.status.value}, success = {res.success}")
    print()


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("nlmin - Nonlinear Minimization Examples")
    print("=" * 60 + "\n")

    example_solver_comparison()
    example_escalation()
    example_feasibility()
    example_autograd()
    example_failure()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
