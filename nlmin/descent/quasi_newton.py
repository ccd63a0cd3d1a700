"""Quasi-Newton directions (BFGS and L-BFGS).

Both strategies fold each accepted step into their curvature model exactly
once: :meth:`accept_step` records the step and the old gradient, and the
secant pair is completed on the next :meth:`compute_direction` call, when
the new gradient is known.
"""

from __future__ import annotations

from abc import abstractmethod
from collections import deque
from typing import Deque, Optional, Tuple

import numpy as np

from ..config import LBFGSConfig
from ..core import Array
from ..problem import Problem
from .base import DescentStrategy

# Secant pairs with y . s at or below this are not curvature information.
_CURVATURE_EPS = 1e-12


class _QuasiNewtonStrategy(DescentStrategy):
    def __init__(self) -> None:
        super().__init__()
        self._ndof = 0
        self._pending: Optional[Tuple[Array, Array]] = None

    def reset(self, ndof: int) -> None:
        self._ndof = ndof
        self._pending = None
        self._reset_history()

    @abstractmethod
    def _reset_history(self) -> None:
        """Forget all curvature information."""

    @abstractmethod
    def _update(self, s: Array, y: Array) -> None:
        """Fold the secant pair ``(s, y)`` into the model."""

    def accept_step(self, x_prev: Array, x_new: Array, grad_prev: Array) -> None:
        self._pending = (np.asarray(x_new - x_prev, dtype=float), np.array(grad_prev, dtype=float))

    def on_escalate(self) -> None:
        # A rejected direction means the curvature model is unreliable.
        self._reset_history()

    def _consume_pending(self, x: Array, grad: Array) -> None:
        if x.size != self._ndof:
            self.reset(x.size)
        if self._pending is not None:
            s, grad_prev = self._pending
            self._pending = None
            self._update(s, grad - grad_prev)


class BFGS(_QuasiNewtonStrategy):
    """Full-memory BFGS on the inverse Hessian approximation."""

    name = "BFGS"

    def __init__(self) -> None:
        super().__init__()
        self._inv_hessian = np.eye(0)

    def _reset_history(self) -> None:
        self._inv_hessian = np.eye(self._ndof)

    def _update(self, s: Array, y: Array) -> None:
        ys = float(np.dot(y, s))
        if ys <= _CURVATURE_EPS:
            self._reset_history()
            return
        rho = 1.0 / ys
        identity = np.eye(self._ndof)
        outer_sy = np.outer(s, y)
        self._inv_hessian = (
            (identity - rho * outer_sy)
            @ self._inv_hessian
            @ (identity - rho * outer_sy.T)
            + rho * np.outer(s, s)
        )

    def compute_direction(self, problem: Problem, x: Array, grad: Array) -> Array:
        self._consume_pending(x, grad)
        with self.metrics.timer("inverting"):
            return -self._inv_hessian @ grad


class LBFGS(_QuasiNewtonStrategy):
    """Limited-memory BFGS using two-loop recursion over the last ``history_size`` pairs."""

    name = "LBFGS"

    def __init__(self, config: Optional[LBFGSConfig] = None) -> None:
        super().__init__()
        self.config = config if config is not None else LBFGSConfig()
        self._s_history: Deque[Array] = deque(maxlen=self.config.history_size)
        self._y_history: Deque[Array] = deque(maxlen=self.config.history_size)

    @property
    def history_length(self) -> int:
        return len(self._s_history)

    def _reset_history(self) -> None:
        self._s_history.clear()
        self._y_history.clear()

    def _update(self, s: Array, y: Array) -> None:
        if float(np.dot(y, s)) > _CURVATURE_EPS:
            self._s_history.append(s)
            self._y_history.append(y)

    def _two_loop(self, g: Array) -> Array:
        q = g.copy()
        alpha_vals = []
        for s, y in reversed(list(zip(self._s_history, self._y_history))):
            rho = 1.0 / float(np.dot(y, s))
            alpha_i = rho * float(np.dot(s, q))
            q = q - alpha_i * y
            alpha_vals.append((rho, alpha_i, s, y))
        if self._s_history:
            last_s = self._s_history[-1]
            last_y = self._y_history[-1]
            gamma = float(np.dot(last_s, last_y) / np.dot(last_y, last_y))
        else:
            gamma = 1.0
        r = gamma * q
        for rho, alpha_i, s, y in reversed(alpha_vals):
            beta = rho * float(np.dot(y, r))
            r = r + s * (alpha_i - beta)
        return -r

    def compute_direction(self, problem: Problem, x: Array, grad: Array) -> Array:
        self._consume_pending(x, grad)
        with self.metrics.timer("inverting"):
            return self._two_loop(np.asarray(grad, dtype=float))


__all__ = ["BFGS", "LBFGS"]
