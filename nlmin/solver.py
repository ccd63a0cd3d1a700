"""
Iterative minimization with descent-strategy escalation.

The :class:`Solver` drives a single sequential loop. Each iteration
evaluates the objective and gradient, checks the stopping thresholds, asks
the active descent strategy for a direction, validates it, and runs the step
search. A bad direction or failed step search escalates to the next, more
robust strategy for the current iteration only; at the last strategy in the
chain the failure is fatal.

Example
-------
>>> import numpy as np
>>> from nlmin import FunctionProblem, Solver
>>> A = np.array([[3.0, 0.5], [0.5, 2.0]])
>>> b = np.array([1.0, -1.0])
>>> problem = FunctionProblem(
...     lambda x: 0.5 * x @ A @ x - b @ x, grad=lambda x: A @ x - b, hess=lambda x: A
... )
>>> solver = Solver.create({"solver": "DenseNewton", "grad_norm": 1e-10})
>>> x, status = solver.minimize(problem, np.zeros(2))
>>> status.value
'converged'
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import SolverConfig, available_solvers
from .core import (
    Array,
    ErrorCode,
    IterationState,
    OptimizeResult,
    SolverError,
    SolverInfo,
    SolverStatus,
)
from .criteria import StoppingThresholds, convergence_reason
from .descent import DescentStrategy, DirectionError, default_chain
from .line_search import Backtracking, LineSearch, create_line_search
from .logging import get_logger
from .problem import Problem
from .timing import Metrics

logger = get_logger(__name__)


class Solver:
    """
    Minimization loop over an ordered chain of descent strategies.

    Args:
        strategies: Strategies from most aggressive to most robust. The last
            one is terminal: failures there end the solve.
        line_search: Step-size search (Armijo backtracking by default).
        thresholds: Stopping thresholds, already scaled to the problem.
        first_grad_norm_tol: Gradient-norm tolerance used during the first
            iteration only. Defaults to ``thresholds.grad_norm``.
        allow_out_of_iterations: If False, reaching the iteration limit
            raises :class:`SolverError`.
        name: Display name; defaults to the primary strategy's name.
    """

    def __init__(
        self,
        strategies: Sequence[DescentStrategy],
        line_search: Optional[LineSearch] = None,
        thresholds: Optional[StoppingThresholds] = None,
        first_grad_norm_tol: Optional[float] = None,
        allow_out_of_iterations: bool = False,
        name: Optional[str] = None,
    ) -> None:
        if not strategies:
            raise ValueError("At least one descent strategy is required.")
        self.strategies = list(strategies)
        self.line_search = line_search if line_search is not None else Backtracking()
        self.thresholds = thresholds if thresholds is not None else StoppingThresholds()
        if first_grad_norm_tol is None:
            first_grad_norm_tol = self.thresholds.grad_norm
        if first_grad_norm_tol < 0:
            raise ValueError("first_grad_norm_tol must be non-negative")
        self.first_grad_norm_tol = first_grad_norm_tol
        self.allow_out_of_iterations = allow_out_of_iterations
        self._name = name if name is not None else self.strategies[0].name

        self.metrics = Metrics()
        for strategy in self.strategies:
            strategy.metrics = self.metrics
        self.line_search.metrics = self.metrics

        self.state = IterationState()
        self.status = SolverStatus.CONTINUE
        self.error_code = ErrorCode.SUCCESS
        self.converged_on: Optional[str] = None
        self.descent_strategy = 0
        self._active_thresholds = self.thresholds
        self._last_energy = math.nan
        self.info = SolverInfo(solver=self.name, line_search=self.line_search.name)

    @classmethod
    def create(
        cls,
        params: Union[Mapping[str, Any], SolverConfig, None] = None,
        characteristic_length: float = 1.0,
        strict_validation: bool = True,
    ) -> "Solver":
        """
        Build a solver from a configuration mapping or :class:`SolverConfig`.

        Tolerances are multiplied by ``characteristic_length``.

        Raises:
            ValueError: If the configuration is invalid (see
                :meth:`SolverConfig.from_dict`) or the length is not positive.
        """
        if isinstance(params, SolverConfig):
            config = params
        else:
            config = SolverConfig.from_dict(params or {}, strict=strict_validation)
        thresholds = config.thresholds(characteristic_length)
        line_search = create_line_search(config.line_search)
        line_search.use_grad_norm_tol = config.line_search.use_grad_norm_tol * characteristic_length
        return cls(
            default_chain(config.solver, config.newton, config.lbfgs),
            line_search,
            thresholds,
            first_grad_norm_tol=config.first_grad_norm_tol * characteristic_length,
            allow_out_of_iterations=config.allow_out_of_iterations,
            name=config.solver,
        )

    @staticmethod
    def available_solvers() -> list[str]:
        return available_solvers()

    @property
    def name(self) -> str:
        return self._name

    @property
    def terminal_level(self) -> int:
        return len(self.strategies) - 1

    @property
    def active_strategy(self) -> DescentStrategy:
        return self.strategies[self.descent_strategy]

    @property
    def descent_strategy_name(self) -> str:
        return self.active_strategy.name

    def set_default_descent_strategy(self) -> None:
        self.descent_strategy = 0

    def reset(self, ndof: int) -> None:
        """Prepare per-solve state for a problem with ``ndof`` unknowns."""
        self.state.reset()
        self.set_default_descent_strategy()
        self.status = SolverStatus.CONTINUE
        self.error_code = ErrorCode.SUCCESS
        self.converged_on = None
        self._active_thresholds = self.thresholds
        self._last_energy = math.nan
        self.metrics.reset()
        for strategy in self.strategies:
            strategy.reset(ndof)
        self.info = SolverInfo(solver=self.name, line_search=self.line_search.name)

    def minimize(self, problem: Problem, x: Array) -> Tuple[Array, SolverStatus]:
        """
        Minimize ``problem`` starting from ``x``, updating ``x`` in place.

        Returns:
            The final point (the same array as ``x``) and the terminal status.

        Raises:
            SolverError: On a non-finite objective or gradient, an
                unrecoverable direction or step-search failure, or the
                iteration limit when ``allow_out_of_iterations`` is False.
            ValueError: If ``x`` is not a 1D floating point array.
        """
        if not isinstance(x, np.ndarray) or x.ndim != 1 or x.dtype.kind != "f":
            raise ValueError("x must be a 1D floating point numpy array")
        self.reset(x.size)

        try:
            with self.metrics.timer("total"):
                self._iterate(problem, x)
        except SolverError as err:
            self._update_info(self._last_energy)
            err.info = self.info
            raise

        if self.status is SolverStatus.ITERATION_LIMIT and not self.allow_out_of_iterations:
            self.error_code = ErrorCode.ITERATION_LIMIT
            message = f"[{self.name}] Reached iteration limit (limit={self.thresholds.max_iterations})"
            logger.error(message)
            self._update_info(self._last_energy)
            raise SolverError(message, self.status, self.error_code, self.state.copy(), self.info)

        logger.info(
            "[%s] Finished: %s Took %gs (niters=%d f=%g Δf=%g ‖∇f‖=%g ‖Δx‖=%g)",
            self.name,
            self.status.value,
            self.metrics.times["total"],
            self.state.iterations,
            self._last_energy,
            self.state.f_delta,
            self.state.grad_norm,
            self.state.x_delta,
        )
        logger.debug("[%s] timing: %s", self.name, self.metrics.summary())

        with self.metrics.timer("obj_fun"):
            final_energy = problem.value(x)
        self._update_info(final_energy)
        return x, self.status

    def _iterate(self, problem: Problem, x: Array) -> None:
        nominal = self.thresholds
        self._active_thresholds = nominal.with_grad_norm(self.first_grad_norm_tol)

        with self.metrics.timer("constraint_set_update"):
            problem.solution_changed(x)
        problem.save_to_file(x)

        with self.metrics.timer("obj_fun"):
            self._last_energy = problem.value(x)
        logger.debug(
            "Starting %s solve f₀=%g (stopping criteria: max_iters=%d Δf=%g ‖∇f‖=%g ‖Δx‖=%g)",
            self.name,
            self._last_energy,
            nominal.max_iterations,
            nominal.f_delta,
            self._active_thresholds.grad_norm,
            nominal.x_delta,
        )
        self._update_info(self._last_energy)

        old_energy = math.nan
        while True:
            self.state.clear()

            with self.metrics.timer("obj_fun"):
                energy = problem.value(x)
            if not math.isfinite(energy):
                self._fail(ErrorCode.NAN_ENCOUNTERED, "f(x) is nan or inf; stopping")
            self._last_energy = energy
            self.state.f_delta = abs(old_energy - energy)
            old_energy = energy
            if self._converged():
                break

            with self.metrics.timer("grad"):
                grad = np.asarray(problem.gradient(x), dtype=float)
            grad_norm = float(np.linalg.norm(grad))
            if not math.isfinite(grad_norm):
                self._fail(ErrorCode.NAN_ENCOUNTERED, "Gradient is nan or inf; stopping")
            self.state.grad_norm = grad_norm
            if self._converged():
                break

            step = self._find_step(problem, x, grad, grad_norm)
            if step is None:
                break
            rate, direction = step

            x_prev = x.copy()
            x += rate * direction
            for strategy in self.strategies:
                strategy.accept_step(x_prev, x, grad)
            self.set_default_descent_strategy()

            with self.metrics.timer("constraint_set_update"):
                problem.solution_changed(x)

            if problem.stop(x):
                self.status = SolverStatus.USER_STOPPED
                logger.debug("[%s] Objective decided to stop", self.name)

            problem.post_step(self.state.iterations, x)

            logger.debug(
                "[%s] iter=%d f=%g Δf=%g ‖∇f‖=%g ‖Δx‖=%g Δx⋅∇f(x)=%g rate=%g ‖step‖=%g",
                self.name,
                self.state.iterations,
                energy,
                self.state.f_delta,
                grad_norm,
                self.state.x_delta,
                float(direction @ grad),
                rate,
                rate * float(np.linalg.norm(direction)),
            )

            self.state.iterations += 1
            if self.status is SolverStatus.CONTINUE and self.state.iterations >= nominal.max_iterations:
                self.status = SolverStatus.ITERATION_LIMIT

            self._update_info(energy)
            problem.save_to_file(x)

            # The first iteration may have used a different gradient tolerance.
            self._active_thresholds = nominal

            keep_going = problem.callback(self.state, x)
            if self.status is not SolverStatus.CONTINUE:
                break
            if not keep_going:
                self.status = SolverStatus.USER_STOPPED
                logger.debug("[%s] Callback requested stop", self.name)
                break

    def _find_step(
        self, problem: Problem, x: Array, grad: Array, grad_norm: float
    ) -> Optional[Tuple[float, Array]]:
        """Direction and step size for this iteration, or None if converged on the step norm."""
        while True:
            self.state.x_delta = math.nan
            strategy = self.active_strategy
            try:
                direction = np.asarray(strategy.compute_direction(problem, x, grad), dtype=float)
            except DirectionError as err:
                self._escalate(f"direction computation failed ({err})", ErrorCode.INVALID_DIRECTION)
                continue

            direction_norm = float(np.linalg.norm(direction))
            if not math.isfinite(direction_norm):
                self._escalate("Δx is nan or inf", ErrorCode.INVALID_DIRECTION)
                continue

            slope = float(direction @ grad)
            if strategy.is_descent and grad_norm != 0 and slope >= 0:
                self._escalate(
                    f"direction is not a descent direction (‖Δx‖={direction_norm:g}; "
                    f"‖g‖={grad_norm:g}; Δx⋅g={slope:g}≥0)",
                    ErrorCode.INVALID_DIRECTION,
                )
                continue

            # The steepest-descent step norm is not an independent convergence signal.
            if self.descent_strategy != self.terminal_level:
                self.state.x_delta = direction_norm
            if self._converged():
                return None

            with self.metrics.timer("line_search"):
                rate = self.line_search.search(x, direction, problem, grad=grad)
            if rate is None or not math.isfinite(rate):
                self._escalate("Line search failed", ErrorCode.LINE_SEARCH_FAILED, warn=True)
                continue
            return rate, direction

    def _escalate(self, reason: str, error_code: ErrorCode, warn: bool = False) -> None:
        """Move to the next strategy, or fail if the active one is terminal."""
        previous = self.active_strategy
        if self.descent_strategy >= self.terminal_level:
            self._fail(error_code, f"{reason} on {previous.name}; stopping")
        previous.on_escalate()
        self.descent_strategy += 1
        self.metrics.record_escalation(
            self.state.iterations, previous.name, self.descent_strategy_name, reason
        )
        log = logger.warning if warn else logger.debug
        log("[%s] %s; reverting to %s", self.name, reason, self.descent_strategy_name)

    def _converged(self) -> bool:
        reason = convergence_reason(self._active_thresholds, self.state)
        if reason is None:
            return False
        self.status = SolverStatus.CONVERGED
        self.converged_on = reason
        return True

    def _fail(self, error_code: ErrorCode, message: str) -> None:
        self.status = SolverStatus.FAILED
        self.error_code = error_code
        message = f"[{self.name}] {message}"
        logger.error(message)
        raise SolverError(message, self.status, error_code, self.state.copy())

    def _update_info(self, energy: float) -> None:
        self.info = SolverInfo(
            solver=self.name,
            line_search=self.line_search.name,
            status=self.status,
            error_code=self.error_code,
            energy=float(energy),
            iterations=self.state.iterations,
            x_delta=self.state.x_delta,
            f_delta=self.state.f_delta,
            grad_norm=self.state.grad_norm,
            total_time=self.metrics.times["total"],
            timings=self.metrics.averages(self.state.iterations),
            line_search_iterations=self.metrics.line_search_iterations,
            escalations=self.metrics.escalations,
            converged_on=self.converged_on,
        )


def minimize(
    problem: Problem,
    x0: Array,
    solver: str = "Newton",
    options: Optional[Mapping[str, Any]] = None,
    characteristic_length: float = 1.0,
    strict_validation: bool = True,
) -> OptimizeResult:
    """
    Minimize ``problem`` from a copy of ``x0`` and return an :class:`OptimizeResult`.

    ``options`` accepts the same keys as :meth:`SolverConfig.from_dict`; an
    explicit ``"solver"`` entry there overrides the ``solver`` argument.
    Hard failures propagate as :class:`SolverError`.
    """
    params = dict(options or {})
    params.setdefault("solver", solver)
    engine = Solver.create(params, characteristic_length, strict_validation)
    x = np.array(x0, dtype=float)
    x, status = engine.minimize(problem, x)
    info = engine.info
    success = status in (SolverStatus.CONVERGED, SolverStatus.USER_STOPPED)
    if status is SolverStatus.CONVERGED:
        message = f"Converged on {engine.converged_on} tolerance."
    elif status is SolverStatus.USER_STOPPED:
        message = "Stopped by the problem."
    else:
        message = "Maximum iterations reached."
    return OptimizeResult(
        x=x,
        fun=info.energy,
        nit=info.iterations,
        success=success,
        status=status,
        message=message,
        grad_norm=info.grad_norm,
        info=info,
    )


__all__ = ["Solver", "minimize"]
