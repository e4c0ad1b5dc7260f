"""Utility helpers for finite differences and argument validation.

The finite-difference routines back :class:`stopping.models.FunctionModel`
when a derivative callable is not supplied. They are pure NumPy and suited to
small and medium sized models.
"""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from .exceptions import PreconditionError

Array = np.ndarray
Objective = Callable[[Array], float]
VectorFunction = Callable[[Array], Array]


def as_vector(value, name: str = "value") -> Array:
    """Return ``value`` as a 1-D float array, raising on higher ranks."""
    vec = np.asarray(value, dtype=float)
    if vec.ndim == 0:
        vec = vec.reshape(1)
    if vec.ndim != 1:
        raise PreconditionError(f"{name} must be a 1-D vector, got shape {vec.shape}")
    return vec


def check_dimension(vec: Array, size: int, name: str) -> None:
    """Raise :class:`PreconditionError` unless ``vec`` has ``size`` entries."""
    if vec.shape != (size,):
        raise PreconditionError(
            f"{name} has shape {vec.shape}, expected ({size},)"
        )


def approx_grad(
    fun: Objective, x: Array, eps: float = 1e-6, return_evals: bool = False
) -> Array | tuple[Array, int]:
    """Compute a central-difference gradient approximation.

    Parameters
    ----------
    fun:
        Objective function returning a scalar given x.
    x:
        Point where the gradient is approximated.
    eps:
        Perturbation size for finite differences.
    """
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float).copy()
    grad = np.zeros_like(x, dtype=float)
    evals = 0
    for i in range(x.size):
        ei = np.zeros_like(x)
        ei[i] = eps
        grad[i] = (fun(x + ei) - fun(x - ei)) / (2.0 * eps)
        evals += 2
    if return_evals:
        return grad, evals
    return grad


def approx_jacobian(
    cons: VectorFunction,
    x: Array,
    eps: float = 1e-6,
    ncon: Optional[int] = None,
    return_evals: bool = False,
) -> Array | tuple[Array, int]:
    """Central-difference Jacobian of a vector function, shape ``(m, n)``."""
    if eps <= 0:
        raise ValueError("eps must be positive")
    x = np.asarray(x, dtype=float).copy()
    evals = 0
    if ncon is None:
        ncon = np.asarray(cons(x), dtype=float).size
        evals += 1
    jac = np.zeros((ncon, x.size), dtype=float)
    for j in range(x.size):
        ej = np.zeros_like(x)
        ej[j] = eps
        c_plus = np.asarray(cons(x + ej), dtype=float).reshape(-1)
        c_minus = np.asarray(cons(x - ej), dtype=float).reshape(-1)
        evals += 2
        jac[:, j] = (c_plus - c_minus) / (2.0 * eps)
    if return_evals:
        return jac, evals
    return jac


__all__ = [
    "Array",
    "Objective",
    "VectorFunction",
    "as_vector",
    "check_dimension",
    "approx_grad",
    "approx_jacobian",
]
