"""Objective interface consumed by the solver and line searches."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np

from .core import Array, Gradient, Hessian, IterationState, Objective
from .utils import approx_grad, approx_hessian


class Problem(ABC):
    """
    Differentiable objective with solver lifecycle hooks.

    Subclasses implement :meth:`value` and :meth:`gradient`. Newton
    strategies additionally require :meth:`hessian`, which may return a
    dense array or a ``scipy.sparse`` matrix. Every other hook has a no-op
    default.
    """

    @abstractmethod
    def value(self, x: Array) -> float:
        """Objective value at ``x``."""

    @abstractmethod
    def gradient(self, x: Array) -> Array:
        """Gradient at ``x`` as a new array."""

    def hessian(self, x: Array) -> Any:
        raise NotImplementedError(f"{self.__class__.__name__} does not provide a Hessian")

    def solution_changed(self, x: Array) -> None:
        """Notification that ``x`` is the new point, before derivatives are evaluated."""

    def stop(self, x: Array) -> bool:
        """Return True to request an early, successful stop."""
        return False

    def post_step(self, iteration: int, x: Array) -> None:
        """Side-effecting hook run after each accepted step."""

    def callback(self, state: IterationState, x: Array) -> bool:
        """Return False to veto the next iteration."""
        return True

    def save_to_file(self, x: Array) -> None:
        """Persist ``x``; invoked once at start and once per iteration."""

    # Line-search hooks

    def line_search_begin(self, x0: Array, x1: Array) -> None:
        """Broad phase over the full step extent ``x0 -> x1``."""

    def line_search_end(self) -> None:
        pass

    def is_step_valid(self, x0: Array, x1: Array) -> bool:
        return True

    def max_step_size(self, x0: Array, x1: Array) -> float:
        """Fraction of the step ``x0 -> x1`` that is feasible (narrow phase)."""
        return 1.0

    def is_step_collision_free(self, x0: Array, x1: Array) -> bool:
        return True


class FunctionProblem(Problem):
    """
    Problem built from plain callables.

    Missing derivatives are approximated with central finite differences.

    Example
    -------
    >>> import numpy as np
    >>> problem = FunctionProblem(lambda x: float(x @ x), grad=lambda x: 2 * x)
    >>> problem.value(np.array([1.0, 2.0]))
    5.0
    """

    def __init__(
        self,
        fun: Objective,
        grad: Optional[Gradient] = None,
        hess: Optional[Hessian] = None,
    ) -> None:
        self.fun = fun
        self.grad = grad
        self.hess = hess

    def value(self, x: Array) -> float:
        return float(self.fun(x))

    def gradient(self, x: Array) -> Array:
        if self.grad is not None:
            return np.asarray(self.grad(x), dtype=float)
        return approx_grad(self.fun, x)

    def hessian(self, x: Array) -> Any:
        if self.hess is not None:
            return self.hess(x)
        return approx_hessian(self.fun, x)


__all__ = ["FunctionProblem", "Problem"]
