"""
Validated, immutable solver configuration.

Configurations are usually read from JSON-like mappings. :meth:`SolverConfig.from_dict`
checks every key against the fields declared here. With ``strict=True``
unknown keys and invalid values raise ``ValueError``; otherwise unknown keys
are dropped and invalid values fall back to their defaults, each with a
logged warning.

Example
-------
>>> config = SolverConfig.from_dict(
...     {"solver": "L-BFGS", "grad_norm": 1e-6, "line_search": {"method": "Armijo"}}
... )
>>> config.solver, config.line_search.method
('LBFGS', 'Backtracking')
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from .criteria import StoppingThresholds
from .logging import get_logger

logger = get_logger(__name__)

SOLVER_ALIASES: Dict[str, str] = {
    "Newton": "SparseNewton",
    "SparseNewton": "SparseNewton",
    "sparse_newton": "SparseNewton",
    "DenseNewton": "DenseNewton",
    "dense_newton": "DenseNewton",
    "BFGS": "BFGS",
    "L-BFGS": "LBFGS",
    "LBFGS": "LBFGS",
    "GradientDescent": "GradientDescent",
    "gradient_descent": "GradientDescent",
}

LINE_SEARCH_ALIASES: Dict[str, str] = {
    "Backtracking": "Backtracking",
    "Armijo": "Backtracking",
    "StrongWolfe": "StrongWolfe",
    "MoreThuente": "StrongWolfe",
    "None": "None",
    "none": "None",
}

Validator = Callable[[Any], Any]


def _number(lower: Optional[float] = None, upper: Optional[float] = None, open_lower: bool = False) -> Validator:
    def check(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"expected a number, got {value!r}")
        value = float(value)
        if math.isnan(value):
            raise ValueError("expected a number, got nan")
        if lower is not None and (value <= lower if open_lower else value < lower):
            raise ValueError(f"{value} is below the allowed minimum {lower}")
        if upper is not None and value > upper:
            raise ValueError(f"{value} is above the allowed maximum {upper}")
        return value

    return check


def _integer(lower: int = 0) -> Validator:
    def check(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"expected an integer, got {value!r}")
        if value < lower:
            raise ValueError(f"{value} is below the allowed minimum {lower}")
        return value

    return check


def _boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _choice(aliases: Mapping[str, str]) -> Validator:
    def check(value: Any) -> str:
        if value not in aliases:
            raise ValueError(f"unrecognized value {value!r}; expected one of {sorted(aliases)}")
        return aliases[value]

    return check


def _reject(strict: bool, message: str) -> None:
    if strict:
        raise ValueError(message)
    logger.warning("%s; ignoring", message)


def _build(cls: type, params: Mapping[str, Any], strict: bool, section: str) -> Dict[str, Any]:
    """Validate ``params`` against the ``RULES`` of ``cls`` and return constructor kwargs."""
    if not isinstance(params, Mapping):
        _reject(strict, f"section '{section or '.'}' must be a mapping, got {type(params).__name__}")
        return {}
    rules: Dict[str, Validator] = cls.RULES
    kwargs: Dict[str, Any] = {}
    for key, value in params.items():
        path = f"{section}{key}"
        if key not in rules:
            _reject(strict, f"unknown configuration key '{path}'")
            continue
        try:
            kwargs[key] = rules[key](value)
        except ValueError as err:
            _reject(strict, f"invalid value for '{path}': {err}")
    return kwargs


@dataclass(frozen=True)
class LineSearchConfig:
    """
    Step-size search settings.

    Args:
        method: Canonical search name ("Backtracking", "StrongWolfe", "None").
        use_grad_norm_tol: Below this gradient norm the search compares
            gradient norms instead of objective values.
        min_step_size: Steps shorter than this count as a failed search.
        max_step_size_iter: Shrink budget per search phase.
        default_init_step_size: First trial step.
        step_ratio: Shrink factor applied to rejected steps.
        armijo_c: Sufficient-decrease constant.
        wolfe_c2: Curvature constant for the strong Wolfe search.
    """

    method: str = "Backtracking"
    use_grad_norm_tol: float = 1e-4
    min_step_size: float = 1e-10
    max_step_size_iter: int = 30
    default_init_step_size: float = 1.0
    step_ratio: float = 0.5
    armijo_c: float = 1e-4
    wolfe_c2: float = 0.9

    RULES = {
        "method": _choice(LINE_SEARCH_ALIASES),
        "use_grad_norm_tol": _number(lower=0.0),
        "min_step_size": _number(lower=0.0),
        "max_step_size_iter": _integer(lower=1),
        "default_init_step_size": _number(lower=0.0, open_lower=True),
        "step_ratio": _number(lower=0.0, upper=1.0, open_lower=True),
        "armijo_c": _number(lower=0.0, upper=1.0, open_lower=True),
        "wolfe_c2": _number(lower=0.0, upper=1.0, open_lower=True),
    }

    @classmethod
    def from_dict(cls, params: Mapping[str, Any], strict: bool = True, section: str = "line_search.") -> "LineSearchConfig":
        return cls(**_build(cls, params, strict, section))


@dataclass(frozen=True)
class NewtonConfig:
    """Diagonal regularization schedule for the regularized Newton fallback."""

    reg_weight_min: float = 1e-8
    reg_weight_max: float = 1e8
    reg_weight_inc: float = 10.0

    RULES = {
        "reg_weight_min": _number(lower=0.0, open_lower=True),
        "reg_weight_max": _number(lower=0.0, open_lower=True),
        "reg_weight_inc": _number(lower=1.0, open_lower=True),
    }

    @classmethod
    def from_dict(cls, params: Mapping[str, Any], strict: bool = True, section: str = "Newton.") -> "NewtonConfig":
        return cls(**_build(cls, params, strict, section))


@dataclass(frozen=True)
class LBFGSConfig:
    history_size: int = 6

    RULES = {"history_size": _integer(lower=1)}

    @classmethod
    def from_dict(cls, params: Mapping[str, Any], strict: bool = True, section: str = "L-BFGS.") -> "LBFGSConfig":
        return cls(**_build(cls, params, strict, section))


@dataclass(frozen=True)
class SolverConfig:
    """
    Top-level solver settings.

    Tolerances are nominal; :meth:`thresholds` scales them by the problem's
    characteristic length.
    """

    solver: str = "SparseNewton"
    x_delta: float = 0.0
    f_delta: float = 0.0
    grad_norm: float = 1e-8
    max_iterations: int = 500
    first_grad_norm_tol: float = 1e-10
    allow_out_of_iterations: bool = False
    line_search: LineSearchConfig = field(default_factory=LineSearchConfig)
    newton: NewtonConfig = field(default_factory=NewtonConfig)
    lbfgs: LBFGSConfig = field(default_factory=LBFGSConfig)

    RULES = {
        "solver": _choice(SOLVER_ALIASES),
        "x_delta": _number(lower=0.0),
        "f_delta": _number(lower=0.0),
        "grad_norm": _number(lower=0.0),
        "max_iterations": _integer(lower=0),
        "first_grad_norm_tol": _number(lower=0.0),
        "allow_out_of_iterations": _boolean,
        "line_search": lambda value: value,
        "Newton": lambda value: value,
        "L-BFGS": lambda value: value,
    }

    @classmethod
    def from_dict(cls, params: Mapping[str, Any], strict: bool = True) -> "SolverConfig":
        """Validate a JSON-like mapping and inject defaults for missing keys."""
        kwargs = _build(cls, params, strict, "")
        nested = {
            "line_search": ("line_search", LineSearchConfig),
            "Newton": ("newton", NewtonConfig),
            "L-BFGS": ("lbfgs", LBFGSConfig),
        }
        for key, (attr, sub_cls) in nested.items():
            if key in kwargs:
                kwargs[attr] = sub_cls.from_dict(kwargs.pop(key), strict=strict, section=f"{key}.")
        return cls(**kwargs)

    def thresholds(self, characteristic_length: float = 1.0) -> StoppingThresholds:
        return StoppingThresholds(
            x_delta=self.x_delta,
            f_delta=self.f_delta,
            grad_norm=self.grad_norm,
            max_iterations=self.max_iterations,
        ).scaled(characteristic_length)


def available_solvers() -> list[str]:
    return ["BFGS", "DenseNewton", "Newton", "GradientDescent", "L-BFGS"]


def available_line_search_methods() -> list[str]:
    return ["Armijo", "Backtracking", "MoreThuente", "None", "StrongWolfe"]


__all__ = [
    "LBFGSConfig",
    "LINE_SEARCH_ALIASES",
    "LineSearchConfig",
    "NewtonConfig",
    "SOLVER_ALIASES",
    "SolverConfig",
    "available_line_search_methods",
    "available_solvers",
]
