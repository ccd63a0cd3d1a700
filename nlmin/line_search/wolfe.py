"""Strong Wolfe line search with bracketing and zoom (Nocedal & Wright, Alg. 3.5/3.6)."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..core import Array
from ..problem import Problem
from .backtracking import Backtracking


class StrongWolfe(Backtracking):
    """
    Strong Wolfe search bounded by the feasible step.

    The step is never expanded beyond the feasibility-limited initial step,
    so when the curvature condition cannot be met within it the search
    returns the largest step that satisfies sufficient decrease.
    """

    name = "StrongWolfe"

    def __init__(self, config=None) -> None:
        super().__init__(config)
        if not (self.config.armijo_c < self.config.wolfe_c2 < 1):
            raise ValueError("Require 0 < c1 < c2 < 1 for Wolfe conditions.")

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
        if use_grad_norm:
            return super()._descent_step(
                x, direction, problem, initial_energy, grad, use_grad_norm, step
            )
        c1 = self.config.armijo_c
        c2 = self.config.wolfe_c2
        der0 = float(np.dot(grad, direction))
        if der0 >= 0:
            return None

        def phi(alpha: float) -> float:
            return self._trial_value(problem, x + alpha * direction)

        def phi_prime(alpha: float) -> float:
            return float(np.dot(problem.gradient(x + alpha * direction), direction))

        phi_alpha = phi(step)
        if not math.isfinite(phi_alpha) or phi_alpha > initial_energy + c1 * step * der0:
            return self._zoom(phi, phi_prime, 0.0, step, initial_energy, initial_energy, der0)
        der_alpha = phi_prime(step)
        if abs(der_alpha) <= -c2 * der0:
            return step
        if der_alpha >= 0:
            return self._zoom(phi, phi_prime, step, 0.0, phi_alpha, initial_energy, der0)
        return step

    def _zoom(self, phi, phi_prime, alo: float, ahi: float, phi_alo: float, phi0: float, der0: float) -> Optional[float]:
        """Zoom stage; ``alo`` always satisfies sufficient decrease."""
        c1 = self.config.armijo_c
        c2 = self.config.wolfe_c2
        for _ in range(self.config.max_step_size_iter):
            self.metrics.line_search_iterations += 1
            alpha = 0.5 * (alo + ahi)
            phi_alpha = phi(alpha)
            if not math.isfinite(phi_alpha) or phi_alpha > phi0 + c1 * alpha * der0 or phi_alpha >= phi_alo:
                ahi = alpha
            else:
                der_alpha = phi_prime(alpha)
                if abs(der_alpha) <= -c2 * der0:
                    return alpha
                if der_alpha * (ahi - alo) >= 0:
                    ahi = alo
                alo = alpha
                phi_alo = phi_alpha
            if abs(ahi - alo) < self.config.min_step_size:
                break
        if alo >= self.config.min_step_size:
            return alo
        return None


__all__ = ["StrongWolfe"]
