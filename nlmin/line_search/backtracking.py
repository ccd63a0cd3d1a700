"""Armijo backtracking."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..core import Array
from ..problem import Problem
from .base import LineSearch


class Backtracking(LineSearch):
    """
    Classic Armijo backtracking.

    Accepts the first step with ``f(x + a d) <= f(x) + c a (g . d)``. Near
    convergence (gradient norm below ``use_grad_norm_tol``) objective values
    are dominated by round-off, so the search instead requires the gradient
    norm to decrease.
    """

    name = "Backtracking"

    def __init__(self, config=None) -> None:
        super().__init__(config)
        if not (0 < self.config.armijo_c < 1):
            raise ValueError("Armijo constant c must lie in (0, 1)")
        if not (0 < self.config.step_ratio < 1):
            raise ValueError("step_ratio must lie in (0, 1)")

    def _accepts(
        self,
        problem: Problem,
        x_new: Array,
        initial_energy: float,
        grad: Array,
        use_grad_norm: bool,
        step: float,
        slope: float,
    ) -> bool:
        if use_grad_norm:
            self._trial_value(problem, x_new)
            new_grad = problem.gradient(x_new)
            return bool(np.linalg.norm(new_grad) < np.linalg.norm(grad))
        f_new = self._trial_value(problem, x_new)
        return math.isfinite(f_new) and f_new <= initial_energy + self.config.armijo_c * step * slope

    def _descent_step(
        self,
        x: Array,
        direction: Array,
        problem: Problem,
        initial_energy: float,
        grad: Array,
        use_grad_norm: bool,
        step: float,
    ) -> Optional[float]:
        slope = min(float(np.dot(grad, direction)), 0.0)
        for _ in range(self.config.max_step_size_iter):
            if self._accepts(problem, x + step * direction, initial_energy, grad, use_grad_norm, step, slope):
                return step
            step = self._shrink(step)
            if step is None:
                return None
        return None


__all__ = ["Backtracking"]
