"""Steepest descent."""

from __future__ import annotations

from ..core import Array
from ..problem import Problem
from .base import DescentStrategy


class GradientDescent(DescentStrategy):
    """Negated gradient; stateless and always defined, hence the terminal fallback."""

    name = "GradientDescent"

    def compute_direction(self, problem: Problem, x: Array, grad: Array) -> Array:
        return -grad


__all__ = ["GradientDescent"]
