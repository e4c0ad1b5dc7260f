"""Pytest configuration and shared fixtures for the stopping tests.

This module provides:
- A deterministic NumPy RNG fixture
- Small models reused across test modules
- Automatic reset of the global debug flag
"""

import os

import numpy as np
import pytest

from stopping import FunctionModel, set_debug_enabled


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def reset_debug_mode():
    """Run every test with debug mode off unless the test enables it."""
    set_debug_enabled(False)
    yield
    set_debug_enabled(False)


@pytest.fixture
def quadratic_model() -> FunctionModel:
    """f(x) = ||x - 1||^2 in two variables, starting at the origin."""

    def fun(x: np.ndarray) -> float:
        return float(np.sum((x - 1.0) ** 2))

    def grad(x: np.ndarray) -> np.ndarray:
        return 2 * (x - 1.0)

    return FunctionModel(fun, grad=grad, hess=lambda _: 2 * np.eye(2), x0=np.zeros(2))


@pytest.fixture
def equality_model() -> FunctionModel:
    """min x0 + x1 subject to x0^2 + x1^2 = 2; solution (-1, -1), lambda = 0.5."""

    def fun(x: np.ndarray) -> float:
        return float(x[0] + x[1])

    def grad(x: np.ndarray) -> np.ndarray:
        return np.array([1.0, 1.0])

    def cons(x: np.ndarray) -> np.ndarray:
        return np.array([x[0] ** 2 + x[1] ** 2])

    def jac(x: np.ndarray) -> np.ndarray:
        return np.array([[2 * x[0], 2 * x[1]]])

    return FunctionModel(
        fun,
        grad=grad,
        cons=cons,
        jac=jac,
        x0=np.array([-1.0, -1.0]),
        lcon=np.array([2.0]),
        ucon=np.array([2.0]),
    )
