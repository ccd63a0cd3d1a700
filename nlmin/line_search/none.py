"""Fixed step without a decrease condition."""

from __future__ import annotations

from .base import LineSearch


class NoLineSearch(LineSearch):
    """
    Accepts the feasible part of the proposed step ``default_init_step_size``.

    The NaN guard and the feasibility phases still shrink the step, but no
    decrease condition is checked. Unsafe unless the caller has verified
    the step independently.
    """

    name = "None"

    def _descent_step(self, x, direction, problem, initial_energy, grad, use_grad_norm, step):
        return step


__all__ = ["NoLineSearch"]
