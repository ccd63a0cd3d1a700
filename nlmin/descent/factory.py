"""Default escalation chains for each solver family."""

from __future__ import annotations

from typing import List, Optional

from ..config import SOLVER_ALIASES, LBFGSConfig, NewtonConfig
from .base import DescentStrategy
from .gradient import GradientDescent
from .newton import DenseNewton, RegularizedDenseNewton, RegularizedSparseNewton, SparseNewton
from .quasi_newton import BFGS, LBFGS


def default_chain(
    solver: str,
    newton: Optional[NewtonConfig] = None,
    lbfgs: Optional[LBFGSConfig] = None,
) -> List[DescentStrategy]:
    """
    Build the ordered strategy list for ``solver``.

    The first element is the primary method and the last one, always
    :class:`GradientDescent`, is the terminal fallback.

    Raises:
        ValueError: If the solver name is not recognized.
    """
    if solver not in SOLVER_ALIASES:
        raise ValueError(
            f"Unrecognized solver type '{solver}'. Supported names: {sorted(SOLVER_ALIASES)}"
        )
    canonical = SOLVER_ALIASES[solver]

    if canonical == "SparseNewton":
        chain: List[DescentStrategy] = [SparseNewton(newton), RegularizedSparseNewton(newton)]
    elif canonical == "DenseNewton":
        chain = [DenseNewton(newton), RegularizedDenseNewton(newton)]
    elif canonical == "BFGS":
        chain = [BFGS()]
    elif canonical == "LBFGS":
        chain = [LBFGS(lbfgs)]
    else:
        chain = []
    chain.append(GradientDescent())
    return chain


__all__ = ["default_chain"]
