"""Central finite differences for problems that do not provide derivatives."""

from __future__ import annotations

import numpy as np

from .core import Array, Objective


def _check_eps(eps: float) -> None:
    if eps <= 0:
        raise ValueError("eps must be positive")


def approx_grad(fun: Objective, x: Array, eps: float = 1e-6) -> Array:
    """
    Gradient of ``fun`` at ``x`` by central differences.

    Costs ``2 n`` objective evaluations; the truncation error is
    ``O(eps**2)``.
    """
    _check_eps(eps)
    x = np.asarray(x, dtype=float)
    steps = eps * np.eye(x.size)
    return np.array([fun(x + h) - fun(x - h) for h in steps], dtype=float) / (2.0 * eps)


def approx_hessian(fun: Objective, x: Array, eps: float = 1e-4) -> Array:
    """Symmetric Hessian of ``fun`` at ``x`` by second-order central differences."""
    _check_eps(eps)
    x = np.asarray(x, dtype=float)
    n = x.size
    steps = eps * np.eye(n)
    center = fun(x)
    hess = np.empty((n, n), dtype=float)
    for i in range(n):
        hi = steps[i]
        hess[i, i] = fun(x + hi) - 2.0 * center + fun(x - hi)
        for j in range(i):
            hj = steps[j]
            mixed = 0.25 * (fun(x + hi + hj) - fun(x + hi - hj) - fun(x - hi + hj) + fun(x - hi - hj))
            hess[i, j] = hess[j, i] = mixed
    return hess / eps**2


__all__ = ["approx_grad", "approx_hessian"]
