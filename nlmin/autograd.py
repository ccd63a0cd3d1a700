"""Problems whose derivatives come from PyTorch autograd."""

from __future__ import annotations

from typing import Callable

import numpy as np
import torch

from .core import Array
from .problem import Problem

TorchObjective = Callable[[torch.Tensor], torch.Tensor]


class TorchProblem(Problem):
    """
    Problem defined by a scalar-valued torch function.

    The solver works on NumPy arrays; each evaluation converts the point to a
    1D tensor of ``dtype``, evaluates ``fun`` and converts the result back.
    Gradients use ``torch.autograd.grad`` and Hessians use
    ``torch.autograd.functional.hessian``.

    Args:
        fun: Callable taking a 1D tensor and returning a 0D tensor.
        dtype: Floating dtype used for evaluation.
    """

    def __init__(self, fun: TorchObjective, dtype: torch.dtype = torch.float64) -> None:
        if not dtype.is_floating_point:
            raise ValueError(f"dtype must be a floating point type, got {dtype}")
        self.fun = fun
        self.dtype = dtype

    def _as_tensor(self, x: Array) -> torch.Tensor:
        x = np.asarray(x, dtype=float)
        if x.ndim != 1:
            raise ValueError(f"x must be 1D, got shape {x.shape}")
        return torch.as_tensor(x, dtype=self.dtype).clone()

    def _evaluate(self, params: torch.Tensor) -> torch.Tensor:
        out = self.fun(params)
        if out.ndim != 0:
            raise ValueError(
                f"objective must return a scalar tensor (0D), got shape {tuple(out.shape)}"
            )
        return out

    def value(self, x: Array) -> float:
        with torch.no_grad():
            return float(self._evaluate(self._as_tensor(x)))

    def gradient(self, x: Array) -> Array:
        params = self._as_tensor(x).requires_grad_(True)
        out = self._evaluate(params)
        if not out.requires_grad:
            return np.zeros(params.shape[0], dtype=float)
        (grad,) = torch.autograd.grad(out, params, allow_unused=True)
        if grad is None:
            return np.zeros(params.shape[0], dtype=float)
        return grad.detach().cpu().numpy().astype(float)

    def hessian(self, x: Array) -> Array:
        hess = torch.autograd.functional.hessian(self._evaluate, self._as_tensor(x))
        return hess.detach().cpu().numpy().astype(float)


__all__ = ["TorchObjective", "TorchProblem"]
