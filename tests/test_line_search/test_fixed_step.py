import math

import numpy as np
import pytest

from nlmin import (
    ErrorCode,
    FunctionProblem,
    LineSearchConfig,
    NoLineSearch,
    Problem,
    SolverStatus,
    minimize,
)


class HalfLine(Problem):
    """``x . x``, undefined once the first coordinate drops below -0.5."""

    def value(self, x):
        if x[0] < -0.5:
            return math.nan
        return float(x @ x)

    def gradient(self, x):
        return 2 * x


def test_accepts_full_step_without_decrease_check():
    problem = HalfLine()
    x = np.array([1.0, 1.0])
    # An ascent direction is accepted as long as it stays finite.
    assert NoLineSearch().search(x, x, problem) == 1.0
    assert NoLineSearch(LineSearchConfig(default_init_step_size=0.25)).search(x, -x, problem) == 0.25


def test_nan_guard_still_shrinks_step():
    x = np.array([1.0, -2.0])
    assert NoLineSearch().search(x, -2 * x, HalfLine(), grad=2 * x) == pytest.approx(0.5)


def test_feasibility_phase_still_limits_step():
    class Limited(HalfLine):
        def max_step_size(self, x0, x1):
            return 0.1

    x = np.array([1.0, 1.0])
    assert NoLineSearch().search(x, -x, Limited()) == pytest.approx(0.1)


def test_solver_recovers_from_non_finite_full_step():
    problem = FunctionProblem(
        lambda x: float(x[0] ** 2) if x[0] > -0.5 else math.nan,
        grad=lambda x: 2 * x,
    )
    res = minimize(
        problem,
        np.array([1.0]),
        solver="GradientDescent",
        options={"line_search": {"method": "None"}},
    )
    assert res.status is SolverStatus.CONVERGED
    assert res.info.error_code is ErrorCode.SUCCESS
    assert res.x[0] == pytest.approx(0.0)
