"""
Lagrange multiplier estimates from an active-set decomposition.

At a point ``x`` the bounds and constraints sitting at one of their limits
(within a tolerance) form the active set. Stationarity of the Lagrangian asks
for multipliers ``l`` with ``Jc @ l = -g(x)``, where the columns of ``Jc`` are
the gradients of the active bounds (coordinate directions) followed by the
gradients of the active constraints. The estimate is the least-squares
solution given by the Moore-Penrose pseudo-inverse; it is the exact
multiplier vector whenever LICQ holds and ``x`` is a KKT point.

References:
    - Nocedal & Wright, *Numerical Optimization* (2006), chapter 12
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .core import ACTIVE_PREC
from .exceptions import PreconditionError
from .logging import get_logger
from .models import NLPModelMeta
from .utils import Array, as_vector, check_dimension

logger = get_logger(__name__)


def _meta_of(problem) -> NLPModelMeta:
    return problem if isinstance(problem, NLPModelMeta) else problem.meta


def _checked_inputs(
    meta: NLPModelMeta,
    x: Array,
    gx: Optional[Array],
    cx: Optional[Array],
    Jx: Optional[Array],
) -> tuple[Array, Optional[Array], Array, Array]:
    x = as_vector(x, "x")
    n = x.size
    check_dimension(x, meta.nvar, "x")
    if gx is not None:
        gx = as_vector(gx, "gx")
        check_dimension(gx, n, "gx")

    if cx is None:
        if meta.ncon > 0:
            raise PreconditionError(
                f"cx is required: the model has {meta.ncon} constraints"
            )
        return x, gx, np.zeros(0), np.zeros((0, n))

    cx = as_vector(cx, "cx")
    check_dimension(cx, meta.ncon, "cx")
    nc = cx.size
    if nc == 0:
        return x, gx, cx, np.zeros((0, n))
    if Jx is None:
        raise PreconditionError(f"Jx is required when there are {nc} constraints")
    Jx = np.asarray(Jx, dtype=float)
    if Jx.ndim == 1 and nc == 1:
        Jx = Jx.reshape(1, -1)
    if Jx.shape != (nc, n):
        raise PreconditionError(f"Jx has shape {Jx.shape}, expected ({nc}, {n})")
    return x, gx, cx, Jx


def _active_indices(value: Array, lower: Array, upper: Array, prec: float) -> Array:
    distance = np.minimum(np.abs(value - lower), np.abs(value - upper))
    return np.flatnonzero(distance <= prec)


def active_set(
    problem,
    x: Array,
    cx: Optional[Array] = None,
    active_prec_c: float = ACTIVE_PREC,
    active_prec_b: float = ACTIVE_PREC,
) -> Tuple[Array, Array]:
    """
    Return the index arrays ``(Ib, Ic)`` of active bounds and constraints.

    A variable is active when its distance to the closer of its two bounds is
    at most ``active_prec_b``; a constraint likewise with ``active_prec_c``.
    ``problem`` may be a model or its :class:`NLPModelMeta`.
    """
    meta = _meta_of(problem)
    x = as_vector(x, "x")
    check_dimension(x, meta.nvar, "x")
    Ib = _active_indices(x, meta.lvar, meta.uvar, active_prec_b)
    if cx is None or meta.ncon == 0:
        return Ib, np.zeros(0, dtype=int)
    cx = as_vector(cx, "cx")
    check_dimension(cx, meta.ncon, "cx")
    Ic = _active_indices(cx, meta.lcon, meta.ucon, active_prec_c)
    return Ib, Ic


def _active_matrix(n: int, Jx: Array, Ib: Array, Ic: Array) -> Array:
    return np.hstack([np.eye(n)[:, Ib], Jx.T[:, Ic]])


def compute_multiplier(
    problem,
    x: Array,
    gx: Array,
    cx: Optional[Array] = None,
    Jx: Optional[Array] = None,
    active_prec_c: float = ACTIVE_PREC,
    active_prec_b: float = ACTIVE_PREC,
) -> Tuple[Array, Array]:
    """
    Estimate the bound multipliers ``mu`` and constraint multipliers ``lambda_``.

    Parameters
    ----------
    problem:
        Model (or its metadata) providing ``lvar``, ``uvar``, ``lcon``, ``ucon``.
    x:
        Current point, shape ``(n,)``.
    gx:
        Objective gradient at ``x``, shape ``(n,)``.
    cx:
        Constraint values at ``x``, shape ``(nc,)``; ``None`` for a model
        without constraints.
    Jx:
        Constraint Jacobian at ``x``, shape ``(nc, n)``; ignored when nc is 0.
    active_prec_c, active_prec_b:
        Activity thresholds for constraints and bounds.

    Returns
    -------
    tuple
        ``(mu, lambda_)`` with shapes ``(n,)`` and ``(nc,)``. Entries outside
        the active set are exactly zero, and both vectors are all zero when
        nothing is active.

    Raises
    ------
    PreconditionError
        On any dimension mismatch, or when ``Jx`` is missing while nc > 0.
    """
    meta = _meta_of(problem)
    if gx is None:
        raise PreconditionError("gx is required to estimate multipliers")
    x, gx, cx, Jx = _checked_inputs(meta, x, gx, cx, Jx)
    n, nc = x.size, cx.size

    Ib = _active_indices(x, meta.lvar, meta.uvar, active_prec_b)
    Ic = (
        _active_indices(cx, meta.lcon, meta.ucon, active_prec_c)
        if nc
        else np.zeros(0, dtype=int)
    )

    mu, lambda_ = np.zeros(n), np.zeros(nc)
    if Ib.size + Ic.size == 0:
        logger.debug("Empty active set, multipliers are zero")
        return mu, lambda_

    Jc = _active_matrix(n, Jx, Ib, Ic)
    estimate = np.linalg.pinv(Jc) @ (-gx)

    mu[Ib] = estimate[: Ib.size]
    lambda_[Ic] = estimate[Ib.size :]
    logger.debug(
        "Multipliers from %d active bounds and %d active constraints", Ib.size, Ic.size
    )
    return mu, lambda_


def licq_holds(
    problem,
    x: Array,
    cx: Optional[Array] = None,
    Jx: Optional[Array] = None,
    active_prec_c: float = ACTIVE_PREC,
    active_prec_b: float = ACTIVE_PREC,
) -> bool:
    """
    Return True if the active constraint gradients are linearly independent.

    An empty active set satisfies LICQ vacuously. When this returns False the
    estimate of :func:`compute_multiplier` is only one of many least-squares
    solutions.
    """
    meta = _meta_of(problem)
    x, _, cx, Jx = _checked_inputs(meta, x, None, cx, Jx)
    Ib, Ic = active_set(meta, x, cx if cx.size else None, active_prec_c, active_prec_b)
    ncols = Ib.size + Ic.size
    if ncols == 0:
        return True
    if ncols > x.size:
        return False
    return int(np.linalg.matrix_rank(_active_matrix(x.size, Jx, Ib, Ic))) == ncols


__all__ = ["active_set", "compute_multiplier", "licq_holds"]
