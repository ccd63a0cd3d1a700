"""Stopping thresholds and the convergence decision."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .core import IterationState, SolverStatus


@dataclass(frozen=True)
class StoppingThresholds:
    """
    Target tolerances for a solve.

    A threshold of zero disables the corresponding test because the
    comparisons are strict. Use :meth:`scaled` to make absolute tolerances
    consistent with the problem's characteristic length.
    """

    x_delta: float = 0.0
    f_delta: float = 0.0
    grad_norm: float = 1e-8
    max_iterations: int = 500

    def __post_init__(self) -> None:
        for name in ("x_delta", "f_delta", "grad_norm"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")

    def scaled(self, characteristic_length: float) -> "StoppingThresholds":
        """Return thresholds with the tolerances multiplied by ``characteristic_length``."""
        if characteristic_length <= 0:
            raise ValueError("characteristic_length must be positive")
        return replace(
            self,
            x_delta=self.x_delta * characteristic_length,
            f_delta=self.f_delta * characteristic_length,
            grad_norm=self.grad_norm * characteristic_length,
        )

    def with_grad_norm(self, grad_norm: float) -> "StoppingThresholds":
        return replace(self, grad_norm=grad_norm)


def convergence_reason(
    thresholds: StoppingThresholds, state: IterationState
) -> Optional[str]:
    """Return the name of the first satisfied tolerance, or None.

    NaN measurements never compare below a threshold, so quantities that
    have not been computed yet cannot trigger convergence.
    """
    if state.x_delta < thresholds.x_delta:
        return "x_delta"
    if state.f_delta < thresholds.f_delta:
        return "f_delta"
    if state.grad_norm < thresholds.grad_norm:
        return "grad_norm"
    return None


def check_convergence(
    thresholds: StoppingThresholds, state: IterationState
) -> SolverStatus:
    """Return ``CONVERGED`` if any tolerance is met, else ``CONTINUE``."""
    if convergence_reason(thresholds, state) is not None:
        return SolverStatus.CONVERGED
    return SolverStatus.CONTINUE


__all__ = ["StoppingThresholds", "check_convergence", "convergence_reason"]
