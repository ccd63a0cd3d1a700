"""
Newton directions from exact second-order information.

Dense variants solve with NumPy; sparse variants factorize with SuperLU
through ``scipy.sparse.linalg.splu``. The regularized variants shift the
Hessian by ``w * I`` with a geometrically increasing weight ``w`` until the
shifted system yields a descent direction.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as spla

from ..config import NewtonConfig
from ..core import Array
from ..problem import Problem
from .base import DescentStrategy, DirectionError


class _NewtonStrategy(DescentStrategy):
    def __init__(self, config: Optional[NewtonConfig] = None) -> None:
        super().__init__()
        self.config = config if config is not None else NewtonConfig()

    def _assemble(self, problem: Problem, x: Array) -> Any:
        with self.metrics.timer("assembly"):
            try:
                return problem.hessian(x)
            except NotImplementedError as err:
                raise DirectionError(str(err)) from err

    def _weights(self):
        weight = self.config.reg_weight_min
        while weight <= self.config.reg_weight_max:
            yield weight
            weight *= self.config.reg_weight_inc


class DenseNewton(_NewtonStrategy):
    """Newton step ``H d = -g`` with a dense solve."""

    name = "DenseNewton"

    def compute_direction(self, problem: Problem, x: Array, grad: Array) -> Array:
        hess = self._assemble(problem, x)
        if sparse.issparse(hess):
            hess = hess.toarray()
        hess = np.asarray(hess, dtype=float)
        with self.metrics.timer("inverting"):
            return self._solve(hess, grad)

    def _solve(self, hess: Array, grad: Array) -> Array:
        try:
            return np.linalg.solve(hess, -grad)
        except np.linalg.LinAlgError as err:
            raise DirectionError(f"singular Hessian: {err}") from err


class RegularizedDenseNewton(DenseNewton):
    """Dense Newton on ``H + w I`` with the smallest ``w`` admitting a Cholesky factor."""

    name = "RegularizedDenseNewton"

    def _solve(self, hess: Array, grad: Array) -> Array:
        sym = 0.5 * (hess + hess.T)
        eye = np.eye(sym.shape[0])
        for weight in self._weights():
            try:
                factor = np.linalg.cholesky(sym + weight * eye)
            except np.linalg.LinAlgError:
                continue
            return np.linalg.solve(factor.T, np.linalg.solve(factor, -grad))
        raise DirectionError(
            f"Hessian is not positive definite with regularization up to {self.config.reg_weight_max:g}"
        )


class SparseNewton(_NewtonStrategy):
    """Newton step with a sparse LU factorization."""

    name = "SparseNewton"

    def compute_direction(self, problem: Problem, x: Array, grad: Array) -> Array:
        hess = sparse.csc_matrix(self._assemble(problem, x), dtype=float)
        with self.metrics.timer("inverting"):
            return self._solve(hess, grad)

    @staticmethod
    def _factor_solve(hess: sparse.csc_matrix, rhs: Array) -> Array:
        try:
            return spla.splu(hess).solve(rhs)
        except RuntimeError as err:
            raise DirectionError(f"sparse factorization failed: {err}") from err

    def _solve(self, hess: sparse.csc_matrix, grad: Array) -> Array:
        return self._factor_solve(hess, -grad)


class RegularizedSparseNewton(SparseNewton):
    """Sparse Newton on ``H + w I``; ``w`` grows until the direction is a finite descent direction."""

    name = "RegularizedSparseNewton"

    def _solve(self, hess: sparse.csc_matrix, grad: Array) -> Array:
        if not np.any(grad):
            return np.zeros_like(grad)
        eye = sparse.identity(hess.shape[0], format="csc")
        for weight in self._weights():
            try:
                direction = self._factor_solve((hess + weight * eye).tocsc(), -grad)
            except DirectionError:
                continue
            if np.all(np.isfinite(direction)) and float(direction @ grad) < 0:
                return direction
        raise DirectionError(
            f"no descent direction with regularization up to {self.config.reg_weight_max:g}"
        )


__all__ = [
    "DenseNewton",
    "RegularizedDenseNewton",
    "RegularizedSparseNewton",
    "SparseNewton",
]
