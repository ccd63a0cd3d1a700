"""Descent-direction strategies and their escalation chains."""

from .base import DescentStrategy, DirectionError
from .factory import default_chain
from .gradient import GradientDescent
from .newton import DenseNewton, RegularizedDenseNewton, RegularizedSparseNewton, SparseNewton
from .quasi_newton import BFGS, LBFGS

__all__ = [
    "BFGS",
    "DenseNewton",
    "DescentStrategy",
    "DirectionError",
    "GradientDescent",
    "LBFGS",
    "RegularizedDenseNewton",
    "RegularizedSparseNewton",
    "SparseNewton",
    "default_chain",
]
