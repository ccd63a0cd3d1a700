"""
Core status, state and result containers shared by the solver components.

Every solve owns an :class:`IterationState` that is reset at the start of
``Solver.minimize``. The solver publishes a read-only :class:`SolverInfo`
snapshot after each iteration and raises :class:`SolverError` for any exit
that is not a normal termination.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

import numpy as np

Array = np.ndarray
Objective = Callable[[Array], float]
Gradient = Callable[[Array], Array]
Hessian = Callable[[Array], Any]


class SolverStatus(Enum):
    """Solver state; ``CONTINUE`` is the only non-terminal value."""

    CONTINUE = "continue"
    CONVERGED = "converged"
    ITERATION_LIMIT = "iteration_limit"
    USER_STOPPED = "user_stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SolverStatus.CONTINUE


class ErrorCode(Enum):
    """Diagnostic code attached to a failed solve."""

    SUCCESS = "success"
    NAN_ENCOUNTERED = "nan_encountered"
    LINE_SEARCH_FAILED = "line_search_failed"
    INVALID_DIRECTION = "invalid_direction"
    ITERATION_LIMIT = "iteration_limit"


@dataclass
class IterationState:
    """
    Measured convergence quantities of the running solve.

    Quantities that have not been computed yet in the current iteration are
    NaN so that they never satisfy a threshold comparison.
    """

    iterations: int = 0
    grad_norm: float = math.nan
    f_delta: float = math.nan
    x_delta: float = math.nan

    def reset(self) -> None:
        self.iterations = 0
        self.clear()

    def clear(self) -> None:
        """Mark the per-iteration measurements as not yet computed."""
        self.grad_norm = math.nan
        self.f_delta = math.nan
        self.x_delta = math.nan

    def copy(self) -> "IterationState":
        return IterationState(
            iterations=self.iterations,
            grad_norm=self.grad_norm,
            f_delta=self.f_delta,
            x_delta=self.x_delta,
        )


@dataclass(frozen=True)
class SolverInfo:
    """
    Read-only summary of a solve.

    Attributes:
        solver: Name of the solver that produced the record.
        line_search: Name of the step-size search method.
        status: Solver status at the time of the snapshot.
        error_code: Diagnostic code (``SUCCESS`` unless the solve failed).
        energy: Objective value at the snapshot.
        iterations: Number of accepted iterations.
        x_delta: Last measured step norm (NaN if not measured).
        f_delta: Last measured objective change.
        grad_norm: Last measured gradient norm.
        total_time: Wall-clock seconds spent inside ``minimize``.
        timings: Per-iteration average seconds for each measured phase.
        line_search_iterations: Cumulative number of step shrinkages.
        escalations: Number of descent-strategy escalations.
        converged_on: Tolerance that triggered convergence, if any.
    """

    solver: str
    line_search: str
    status: SolverStatus = SolverStatus.CONTINUE
    error_code: ErrorCode = ErrorCode.SUCCESS
    energy: float = math.nan
    iterations: int = 0
    x_delta: float = math.nan
    f_delta: float = math.nan
    grad_norm: float = math.nan
    total_time: float = 0.0
    timings: Dict[str, float] = field(default_factory=dict)
    line_search_iterations: int = 0
    escalations: int = 0
    converged_on: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain dictionary with enum members replaced by values."""
        out = asdict(self)
        out["status"] = self.status.value
        out["error_code"] = self.error_code.value
        return out


@dataclass
class OptimizeResult:
    """Result object returned by :func:`nlmin.minimize`."""

    x: Array
    fun: float
    nit: int
    success: bool
    status: SolverStatus
    message: str
    grad_norm: float
    info: Optional[SolverInfo] = None


class SolverError(RuntimeError):
    """Raised when a solve ends in a hard failure.

    The exception carries the status and error code, a copy of the last
    iteration state, and the final :class:`SolverInfo` snapshot.
    """

    def __init__(
        self,
        message: str,
        status: SolverStatus,
        error_code: ErrorCode,
        state: IterationState,
        info: Optional[SolverInfo] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.error_code = error_code
        self.state = state
        self.info = info


__all__ = [
    "Array",
    "ErrorCode",
    "Gradient",
    "Hessian",
    "IterationState",
    "Objective",
    "OptimizeResult",
    "SolverError",
    "SolverInfo",
    "SolverStatus",
]
