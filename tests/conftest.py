"""Pytest configuration and shared fixtures for nlmin tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Standard test objectives (quadratic, Rosenbrock)
"""

import os

import numpy as np
import pytest
import torch


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to set global random seeds for reproducibility."""
    np.random.seed(_seed())
    torch.manual_seed(_seed())


def rosenbrock(x: np.ndarray) -> float:
    return (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2


def rosenbrock_grad(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )


def rosenbrock_hess(x: np.ndarray) -> np.ndarray:
    return np.array(
        [
            [1200 * x[0] ** 2 - 400 * x[1] + 2, -400 * x[0]],
            [-400 * x[0], 200],
        ]
    )


@pytest.fixture
def quadratic():
    """Strictly convex quadratic ``0.5 x^T A x - b^T x`` and its minimizer."""
    from nlmin import FunctionProblem

    A = np.array([[3.0, 0.5], [0.5, 2.0]])
    b = np.array([1.0, -1.0])
    problem = FunctionProblem(
        lambda x: float(0.5 * x @ (A @ x) - b @ x),
        grad=lambda x: A @ x - b,
        hess=lambda _: A,
    )
    return problem, np.linalg.solve(A, b)


@pytest.fixture
def rosenbrock_problem():
    from nlmin import FunctionProblem

    return FunctionProblem(rosenbrock, grad=rosenbrock_grad, hess=rosenbrock_hess)
