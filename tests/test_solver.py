import math

import numpy as np
import pytest

from nlmin import (
    DenseNewton,
    DescentStrategy,
    ErrorCode,
    FunctionProblem,
    GradientDescent,
    LineSearch,
    Problem,
    Solver,
    SolverError,
    SolverStatus,
    StoppingThresholds,
    default_chain,
    minimize,
)


class Recorder(FunctionProblem):
    """Records the objective after every accepted step."""

    def __init__(self, *args, stop_after=None, veto_after=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.energies = []
        self.stop_after = stop_after
        self.veto_after = veto_after

    def post_step(self, iteration, x):
        self.energies.append(self.value(x))

    def stop(self, x):
        return self.stop_after is not None and len(self.energies) + 1 >= self.stop_after

    def callback(self, state, x):
        return self.veto_after is None or state.iterations < self.veto_after


class FailingLineSearch(LineSearch):
    name = "Failing"

    def _descent_step(self, x, direction, problem, initial_energy, grad, use_grad_norm, step):
        return None


class Ascent(DescentStrategy):
    name = "Ascent"

    def compute_direction(self, problem, x, grad):
        return grad


class NoHessianBowl(Problem):
    def value(self, x):
        return float(x @ x)

    def gradient(self, x):
        return 2 * x


def double_well():
    """``x^4 - x^2`` has a negative Hessian on ``|x| < 1/sqrt(6)``."""
    return FunctionProblem(
        lambda x: float(x[0] ** 4 - x[0] ** 2),
        grad=lambda x: 4 * x**3 - 2 * x,
        hess=lambda x: np.array([[12 * x[0] ** 2 - 2]]),
    )


def test_newton_converges_on_quadratic(quadratic):
    problem, minimizer = quadratic
    problem = Recorder(problem.fun, grad=problem.grad, hess=problem.hess)
    solver = Solver.create({"solver": "DenseNewton"})
    x = np.array([2.0, -3.0])
    out, status = solver.minimize(problem, x)

    assert out is x
    assert status is SolverStatus.CONVERGED
    assert np.allclose(x, minimizer)
    assert solver.info.iterations == 1
    assert solver.info.converged_on == "grad_norm"
    assert solver.info.error_code is ErrorCode.SUCCESS
    assert solver.info.energy == pytest.approx(problem.value(minimizer))


def test_energy_is_monotone(rosenbrock_problem):
    problem = Recorder(rosenbrock_problem.fun, grad=rosenbrock_problem.grad)
    solver = Solver.create({"solver": "L-BFGS"})
    solver.minimize(problem, np.array([-1.2, 1.0]))
    assert len(problem.energies) == solver.info.iterations
    assert all(b <= a + 1e-12 for a, b in zip(problem.energies, problem.energies[1:]))


def test_indefinite_hessian_escalates_once_in_first_iteration():
    solver = Solver.create({"solver": "DenseNewton"})
    x, status = solver.minimize(double_well(), np.array([0.1]))

    first = solver.metrics.escalation_log[0]
    assert (first.iteration, first.from_strategy, first.to_strategy) == (
        0,
        "DenseNewton",
        "RegularizedDenseNewton",
    )
    assert sum(e.iteration == 0 for e in solver.metrics.escalation_log) == 1
    assert status is SolverStatus.CONVERGED
    assert x[0] == pytest.approx(1 / math.sqrt(2), abs=1e-6)
    # The chain starts over from the primary strategy after every accepted step.
    assert solver.descent_strategy_name == "DenseNewton"


def test_missing_hessian_falls_back_to_gradient_descent():
    solver = Solver.create({"solver": "DenseNewton", "grad_norm": 1e-10})
    x, status = solver.minimize(NoHessianBowl(), np.array([1.0, -2.0]))
    assert status is SolverStatus.CONVERGED
    assert np.allclose(x, 0.0, atol=1e-10)
    assert solver.info.escalations >= 2
    assert "direction computation failed" in solver.metrics.escalation_log[0].reason


def test_line_search_failure_on_terminal_strategy(quadratic):
    problem, _ = quadratic
    solver = Solver(default_chain("DenseNewton"), line_search=FailingLineSearch())
    x0 = np.array([2.0, -3.0])
    x = x0.copy()
    with pytest.raises(SolverError) as excinfo:
        solver.minimize(problem, x)

    err = excinfo.value
    assert err.status is SolverStatus.FAILED
    assert err.error_code is ErrorCode.LINE_SEARCH_FAILED
    assert err.state.iterations == 0
    assert err.info.escalations == 2
    assert err.info.status is SolverStatus.FAILED
    assert np.array_equal(x, x0)


def test_invalid_direction_on_terminal_strategy(quadratic):
    problem, _ = quadratic
    solver = Solver([Ascent()])
    with pytest.raises(SolverError) as excinfo:
        solver.minimize(problem, np.array([2.0, -3.0]))
    assert excinfo.value.error_code is ErrorCode.INVALID_DIRECTION


def test_non_descent_direction_escalates_to_next_strategy(quadratic):
    problem, minimizer = quadratic
    solver = Solver([Ascent(), GradientDescent()], thresholds=StoppingThresholds(grad_norm=1e-8))
    x, status = solver.minimize(problem, np.array([2.0, -3.0]))
    assert status is SolverStatus.CONVERGED
    assert np.allclose(x, minimizer, atol=1e-6)
    assert solver.info.escalations == solver.info.iterations


@pytest.mark.parametrize(
    "problem",
    [
        FunctionProblem(lambda x: math.nan, grad=lambda x: np.ones_like(x)),
        FunctionProblem(lambda x: float(x @ x), grad=lambda x: np.array([math.nan, 0.0])),
    ],
    ids=["value", "gradient"],
)
def test_nan_is_fatal(problem):
    solver = Solver.create({"solver": "GradientDescent"})
    with pytest.raises(SolverError) as excinfo:
        solver.minimize(problem, np.array([1.0, 1.0]))
    assert excinfo.value.error_code is ErrorCode.NAN_ENCOUNTERED
    assert excinfo.value.info.error_code is ErrorCode.NAN_ENCOUNTERED


def test_iteration_limit_allowed(rosenbrock_problem):
    solver = Solver.create(
        {"solver": "GradientDescent", "max_iterations": 5, "allow_out_of_iterations": True}
    )
    x, status = solver.minimize(rosenbrock_problem, np.array([-1.2, 1.0]))
    assert status is SolverStatus.ITERATION_LIMIT
    assert solver.info.iterations == 5
    assert solver.info.error_code is ErrorCode.SUCCESS


def test_iteration_limit_is_an_error_by_default(rosenbrock_problem):
    solver = Solver.create({"solver": "GradientDescent", "max_iterations": 5})
    with pytest.raises(SolverError) as excinfo:
        solver.minimize(rosenbrock_problem, np.array([-1.2, 1.0]))
    err = excinfo.value
    assert err.status is SolverStatus.ITERATION_LIMIT
    assert err.error_code is ErrorCode.ITERATION_LIMIT
    assert err.state.iterations == 5
    assert err.info.iterations == 5


def test_first_iteration_gradient_tolerance(quadratic):
    problem, minimizer = quadratic
    x0 = minimizer + np.array([1e-6, 0.0])

    loose = Solver.create({"solver": "DenseNewton", "grad_norm": 1e-12, "first_grad_norm_tol": 1e-3})
    loose.minimize(problem, x0.copy())
    assert loose.info.iterations == 0
    assert loose.info.converged_on == "grad_norm"
    assert loose.thresholds.grad_norm == 1e-12

    strict = Solver.create({"solver": "DenseNewton", "grad_norm": 1e-12, "first_grad_norm_tol": 1e-12})
    strict.minimize(problem, x0.copy())
    assert strict.info.iterations >= 1


def test_problem_stop_request(quadratic):
    problem, _ = quadratic
    problem = Recorder(problem.fun, grad=problem.grad, stop_after=1)
    solver = Solver.create({"solver": "GradientDescent", "max_iterations": 1})
    _, status = solver.minimize(problem, np.array([2.0, -3.0]))
    # Stopping takes precedence over the iteration limit.
    assert status is SolverStatus.USER_STOPPED
    assert solver.info.iterations == 1


def test_callback_veto(quadratic):
    problem, _ = quadratic
    problem = Recorder(problem.fun, grad=problem.grad, veto_after=3)
    solver = Solver.create({"solver": "GradientDescent"})
    _, status = solver.minimize(problem, np.array([2.0, -3.0]))
    assert status is SolverStatus.USER_STOPPED
    assert solver.info.iterations == 3


def test_characteristic_length_scales_tolerances():
    solver = Solver.create(
        {"grad_norm": 1e-6, "x_delta": 1e-4, "first_grad_norm_tol": 1e-9},
        characteristic_length=10.0,
    )
    assert solver.thresholds.grad_norm == pytest.approx(1e-5)
    assert solver.thresholds.x_delta == pytest.approx(1e-3)
    assert solver.first_grad_norm_tol == pytest.approx(1e-8)
    assert solver.line_search.use_grad_norm_tol == pytest.approx(1e-3)
    with pytest.raises(ValueError):
        Solver.create({}, characteristic_length=0.0)


def test_step_norm_convergence(quadratic):
    problem, _ = quadratic
    solver = Solver.create({"solver": "DenseNewton", "grad_norm": 0.0, "x_delta": 1e-6})
    _, status = solver.minimize(problem, np.array([2.0, -3.0]))
    assert status is SolverStatus.CONVERGED
    assert solver.info.converged_on == "x_delta"


def test_info_and_metrics_populated(rosenbrock_problem):
    solver = Solver.create({"solver": "BFGS"})
    solver.minimize(rosenbrock_problem, np.array([-1.2, 1.0]))
    info = solver.info
    assert info.solver == "BFGS"
    assert info.line_search == "Backtracking"
    assert info.status is SolverStatus.CONVERGED
    assert info.total_time > 0.0
    assert info.line_search_iterations > 0
    assert set(info.timings) >= {"obj_fun", "grad", "line_search", "classical_line_search"}
    assert "total" not in info.timings
    assert info.to_dict()["status"] == "converged"


def test_solver_is_reusable(quadratic):
    problem, minimizer = quadratic
    solver = Solver.create({"solver": "BFGS"})
    first, _ = solver.minimize(problem, np.array([2.0, -3.0]))
    iterations = solver.info.iterations
    second, _ = solver.minimize(problem, np.array([2.0, -3.0]))
    assert np.allclose(first, second)
    assert solver.info.iterations == iterations


@pytest.mark.parametrize("x", [np.array([1, 2]), np.zeros((2, 2)), [1.0, 2.0]])
def test_rejects_bad_starting_point(quadratic, x):
    problem, _ = quadratic
    with pytest.raises(ValueError):
        Solver.create({}).minimize(problem, x)


def test_requires_strategies():
    with pytest.raises(ValueError):
        Solver([])


def test_names_and_levels():
    solver = Solver.create({"solver": "Newton"})
    assert solver.name == "SparseNewton"
    assert solver.terminal_level == 2
    assert solver.descent_strategy_name == "SparseNewton"
    assert "L-BFGS" in Solver.available_solvers()
    assert Solver([DenseNewton()]).name == "DenseNewton"


def test_functional_minimize_copies_start(rosenbrock_problem):
    x0 = np.array([-1.2, 1.0])
    res = minimize(rosenbrock_problem, x0, solver="BFGS", options={"max_iterations": 300})
    assert res.success
    assert res.status is SolverStatus.CONVERGED
    assert np.allclose(res.x, np.ones(2), atol=1e-5)
    assert np.array_equal(x0, [-1.2, 1.0])
    assert res.nit == res.info.iterations
    assert res.message == "Converged on grad_norm tolerance."


def test_functional_minimize_propagates_errors(rosenbrock_problem):
    with pytest.raises(SolverError):
        minimize(rosenbrock_problem, [-1.2, 1.0], solver="GradientDescent", options={"max_iterations": 2})


class PointTracking(Problem):
    """Counts Hessian requests made while the announced point differs from ``x``."""

    def __init__(self):
        self.current = None
        self.hessian_calls = 0
        self.stale_hessian_calls = 0

    def solution_changed(self, x):
        self.current = x.copy()

    def value(self, x):
        return float(x @ x)

    def gradient(self, x):
        return 2 * x

    def hessian(self, x):
        self.hessian_calls += 1
        if not np.array_equal(self.current, x):
            self.stale_hessian_calls += 1
        return 2 * np.eye(x.size)

    def is_step_valid(self, x0, x1):
        return False


def test_escalated_strategy_sees_current_point():
    problem = PointTracking()
    solver = Solver([DenseNewton(), DenseNewton(), GradientDescent()])
    with pytest.raises(SolverError) as excinfo:
        solver.minimize(problem, np.array([1.0, -2.0]))
    assert excinfo.value.error_code is ErrorCode.LINE_SEARCH_FAILED
    assert problem.hessian_calls == 2
    assert problem.stale_hessian_calls == 0


class BreaksAfter(FunctionProblem):
    """Quadratic whose value or gradient turns NaN after ``k`` accepted steps."""

    def __init__(self, quadratic, k, broken):
        super().__init__(quadratic.fun, grad=quadratic.grad)
        self.k = k
        self.broken = broken
        self.accepted = []

    def post_step(self, iteration, x):
        self.accepted.append(x.copy())

    def value(self, x):
        if self.broken == "value" and len(self.accepted) >= self.k:
            return math.nan
        return super().value(x)

    def gradient(self, x):
        if self.broken == "gradient" and len(self.accepted) >= self.k:
            return np.full_like(x, math.nan)
        return super().gradient(x)


@pytest.mark.parametrize("broken", ["value", "gradient"])
def test_nan_after_accepted_iterations_is_fatal(quadratic, broken):
    problem = BreaksAfter(quadratic[0], k=3, broken=broken)
    solver = Solver.create({"solver": "GradientDescent"})
    x = np.array([2.0, -3.0])
    with pytest.raises(SolverError) as excinfo:
        solver.minimize(problem, x)
    err = excinfo.value
    assert err.error_code is ErrorCode.NAN_ENCOUNTERED
    assert err.state.iterations == 3
    assert np.array_equal(x, problem.accepted[-1])


def test_info_record_fields(quadratic):
    problem, _ = quadratic
    solver = Solver.create({"solver": "DenseNewton"})
    solver.minimize(problem, np.array([2.0, -3.0]))
    assert set(solver.info.to_dict()) == {
        "solver",
        "line_search",
        "status",
        "error_code",
        "energy",
        "iterations",
        "x_delta",
        "f_delta",
        "grad_norm",
        "total_time",
        "timings",
        "line_search_iterations",
        "escalations",
        "converged_on",
    }
