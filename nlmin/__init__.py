"""nlmin - iterative nonlinear minimization with descent-strategy escalation.

Example
-------
>>> import numpy as np
>>> from nlmin import FunctionProblem, minimize
>>> def rosen(x):
...     return (1 - x[0])**2 + 100 * (x[1] - x[0]**2)**2
>>> def rosen_grad(x):
...     return np.array([
...         -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
...         200 * (x[1] - x[0] ** 2),
...     ])
>>> res = minimize(FunctionProblem(rosen, grad=rosen_grad), [-1.2, 1.0], solver="L-BFGS")
>>> bool(res.success)
True
"""

__version__ = "0.1.0"

from .autograd import TorchProblem
from .config import (
    LBFGSConfig,
    LineSearchConfig,
    NewtonConfig,
    SolverConfig,
    available_line_search_methods,
    available_solvers,
)
from .core import (
    ErrorCode,
    IterationState,
    OptimizeResult,
    SolverError,
    SolverInfo,
    SolverStatus,
)
from .criteria import StoppingThresholds, check_convergence, convergence_reason
from .descent import (
    BFGS,
    LBFGS,
    DenseNewton,
    DescentStrategy,
    DirectionError,
    GradientDescent,
    RegularizedDenseNewton,
    RegularizedSparseNewton,
    SparseNewton,
    default_chain,
)
from .line_search import (
    Backtracking,
    LineSearch,
    NoLineSearch,
    StrongWolfe,
    create_line_search,
)
from .problem import FunctionProblem, Problem
from .solver import Solver, minimize
from .timing import Escalation, Metrics

__all__ = [
    "BFGS",
    "Backtracking",
    "DenseNewton",
    "DescentStrategy",
    "DirectionError",
    "ErrorCode",
    "Escalation",
    "FunctionProblem",
    "GradientDescent",
    "IterationState",
    "LBFGS",
    "LBFGSConfig",
    "LineSearch",
    "LineSearchConfig",
    "Metrics",
    "NewtonConfig",
    "NoLineSearch",
    "OptimizeResult",
    "Problem",
    "RegularizedDenseNewton",
    "RegularizedSparseNewton",
    "Solver",
    "SolverConfig",
    "SolverError",
    "SolverInfo",
    "SolverStatus",
    "SparseNewton",
    "StoppingThresholds",
    "StrongWolfe",
    "TorchProblem",
    "available_line_search_methods",
    "available_solvers",
    "check_convergence",
    "convergence_reason",
    "create_line_search",
    "default_chain",
    "minimize",
]
