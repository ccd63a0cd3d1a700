"""
Step-size search template.

:meth:`LineSearch.search` runs four phases on a candidate direction ``d``:

1. NaN guard: shrink the step until ``f(x + a d)`` is finite and the
   problem accepts the step as valid.
2. Broad phase: ``problem.line_search_begin`` over the full remaining step.
3. Narrow phase: scale the step by ``problem.max_step_size`` and shrink
   until ``problem.is_step_collision_free``.
4. Classical search implemented by subclasses in :meth:`_descent_step`.

Any phase may fail, in which case ``search`` returns ``None`` and calls
``problem.solution_changed(x)`` so the problem is back at ``x``. A
successful search always satisfies the subclass's decrease condition.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..config import LineSearchConfig
from ..core import Array
from ..logging import get_logger
from ..problem import Problem
from ..timing import Metrics

logger = get_logger(__name__)


class LineSearch(ABC):
    """Base class for step-size searches."""

    name = "LineSearch"

    def __init__(self, config: Optional[LineSearchConfig] = None) -> None:
        self.config = config if config is not None else LineSearchConfig()
        # The solver overrides this with the tolerance scaled by the characteristic length.
        self.use_grad_norm_tol = self.config.use_grad_norm_tol
        self.metrics = Metrics()

    def search(
        self,
        x: Array,
        direction: Array,
        problem: Problem,
        grad: Optional[Array] = None,
    ) -> Optional[float]:
        """
        Return a step size along ``direction`` or ``None`` if the search failed.

        Trial points are announced through ``problem.solution_changed``; after a
        failed search the problem is pointed back at ``x``.
        """
        step = self._run_phases(x, direction, problem, grad)
        if step is None:
            with self.metrics.timer("line_search_constraint_set_update"):
                problem.solution_changed(x)
        return step

    def _run_phases(
        self, x: Array, direction: Array, problem: Problem, grad: Optional[Array]
    ) -> Optional[float]:
        initial_energy = problem.value(x)
        if not math.isfinite(initial_energy):
            logger.debug("[%s] initial energy is not finite", self.name)
            return None
        if grad is None:
            grad = problem.gradient(x)
        use_grad_norm = float(np.linalg.norm(grad)) < self.use_grad_norm_tol

        with self.metrics.timer("checking_for_nan_inf"):
            step = self._nan_free_step(x, direction, problem, self.config.default_init_step_size)
        if step is None:
            logger.debug("[%s] no finite step found", self.name)
            return None

        try:
            with self.metrics.timer("broad_phase_ccd"):
                problem.line_search_begin(x, x + step * direction)
            with self.metrics.timer("ccd"):
                step = self._collision_free_step(x, direction, problem, step)
            if step is None:
                logger.debug("[%s] no collision-free step found", self.name)
                return None
            with self.metrics.timer("classical_line_search"):
                step = self._descent_step(
                    x, direction, problem, initial_energy, grad, use_grad_norm, step
                )
        finally:
            problem.line_search_end()

        if step is None:
            logger.debug("[%s] step size fell below %g", self.name, self.config.min_step_size)
        return step

    # Helpers shared by subclasses

    def _shrink(self, step: float) -> Optional[float]:
        """Reduce ``step`` by the configured ratio; ``None`` once below the minimum."""
        self.metrics.line_search_iterations += 1
        step *= self.config.step_ratio
        if step < self.config.min_step_size:
            return None
        return step

    def _trial_value(self, problem: Problem, x_new: Array) -> float:
        with self.metrics.timer("line_search_constraint_set_update"):
            problem.solution_changed(x_new)
        return problem.value(x_new)

    def _nan_free_step(
        self, x: Array, direction: Array, problem: Problem, step: float
    ) -> Optional[float]:
        for _ in range(self.config.max_step_size_iter):
            x_new = x + step * direction
            if math.isfinite(self._trial_value(problem, x_new)) and problem.is_step_valid(x, x_new):
                return step
            step = self._shrink(step)
            if step is None:
                return None
        return None

    def _collision_free_step(
        self, x: Array, direction: Array, problem: Problem, step: float
    ) -> Optional[float]:
        fraction = float(problem.max_step_size(x, x + step * direction))
        if not fraction > 0:
            return None
        step *= min(fraction, 1.0)
        for _ in range(self.config.max_step_size_iter):
            if step < self.config.min_step_size:
                return None
            if problem.is_step_collision_free(x, x + step * direction):
                return step
            step = self._shrink(step)
            if step is None:
                return None
        return None

    @abstractmethod
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
        """Classical search starting from the feasible ``step``."""


__all__ = ["LineSearch"]
