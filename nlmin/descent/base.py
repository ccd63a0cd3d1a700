"""Common interface of the descent-direction strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..core import Array
from ..problem import Problem
from ..timing import Metrics


class DirectionError(RuntimeError):
    """A strategy could not compute a direction (e.g. singular system)."""


class DescentStrategy(ABC):
    """
    Produces an update direction from the gradient at the current point.

    Strategies must be deterministic given their internal state and inputs.
    Stateful strategies fold accepted steps into their state through
    :meth:`accept_step`; escalation attempts never change that state except
    through :meth:`on_escalate`.
    """

    name = "DescentStrategy"
    # Directions must satisfy d . g < 0; the solver escalates otherwise.
    is_descent = True

    def __init__(self) -> None:
        self.metrics = Metrics()

    def reset(self, ndof: int) -> None:
        """Discard internal state before a new solve of ``ndof`` unknowns."""

    @abstractmethod
    def compute_direction(self, problem: Problem, x: Array, grad: Array) -> Array:
        """Return the candidate direction at ``x``; raise :class:`DirectionError` on failure."""

    def accept_step(self, x_prev: Array, x_new: Array, grad_prev: Array) -> None:
        """Notification of an accepted step ``x_prev -> x_new``."""

    def on_escalate(self) -> None:
        """Called when the solver abandons this strategy for the current iteration."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


__all__ = ["DescentStrategy", "DirectionError"]
