"""
Optimality residuals for unconstrained and constrained problems.

Optimality functions take ``(problem, state)`` and return either a single
residual or a pair ``(optimality, feasibility)``; the stopping machines
compare them with their tolerances.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np

from .core import ACTIVE_PREC
from .exceptions import PreconditionError
from .multipliers import compute_multiplier
from .state import NLPAtX
from .utils import Array


def _norm(vec: Array, ord: float) -> float:
    if vec.size == 0:
        return 0.0
    return float(np.linalg.norm(vec, ord=ord))


def _complementarity(mult: Array, value: Array, lower: Array, upper: Array) -> Array:
    distance = np.minimum(np.abs(value - lower), np.abs(value - upper))
    finite = np.isfinite(distance)
    # a multiplier on a side without a finite limit is itself the violation
    return np.where(finite, np.abs(mult) * np.where(finite, distance, 0.0), np.abs(mult))


def _sign_violation(mult: Array, value: Array, lower: Array, upper: Array) -> Array:
    to_lower = np.abs(value - lower)
    to_upper = np.abs(value - upper)
    # closer to the lower limit wants mult <= 0, closer to the upper one mult >= 0
    return np.where(
        to_lower < to_upper,
        np.maximum(mult, 0.0),
        np.where(to_upper < to_lower, np.maximum(-mult, 0.0), 0.0),
    )


def _require(state: NLPAtX, *names: str) -> None:
    missing = [name for name in names if getattr(state, name) is None]
    if missing:
        raise PreconditionError(
            f"State is missing {missing} required by this optimality check"
        )


def unconstrained_residual(problem, state: NLPAtX, ord: float = np.inf) -> float:
    """Norm of the objective gradient."""
    del problem  # bounds and constraints are ignored
    _require(state, "gx")
    return _norm(state.gx, ord)


def multipliers_of(
    problem,
    state: NLPAtX,
    active_prec_c: float = ACTIVE_PREC,
    active_prec_b: float = ACTIVE_PREC,
) -> Tuple[Array, Array]:
    """Multipliers stored in ``state``, estimated where missing."""
    ncon = problem.meta.ncon
    if state.mu is not None and (ncon == 0 or state.lambda_ is not None):
        lambda_ = state.lambda_ if state.lambda_ is not None else np.zeros(0)
        return state.mu, lambda_
    mu, lambda_ = compute_multiplier(
        problem,
        state.x,
        state.gx,
        state.cx if ncon else None,
        state.Jx,
        active_prec_c=active_prec_c,
        active_prec_b=active_prec_b,
    )
    if state.mu is not None:
        mu = state.mu
    if state.lambda_ is not None:
        lambda_ = state.lambda_
    return mu, lambda_


def kkt_residuals(
    problem,
    state: NLPAtX,
    ord: float = np.inf,
    active_prec_c: float = ACTIVE_PREC,
    active_prec_b: float = ACTIVE_PREC,
) -> Dict[str, float]:
    """
    Compute norms of the KKT residuals at ``state``.

    The Lagrangian gradient is ``gx + mu + Jx.T @ lambda_``. Multipliers come
    from the state, or from :func:`stopping.multipliers.compute_multiplier`
    when the state does not carry them.

    Returns
    -------
    dict
        ``dual`` (Lagrangian gradient), ``complementary`` (multipliers times
        distance to the limit), ``sign`` (multipliers of the wrong sign
        for the closer limit), ``primal_bounds`` and ``primal_cons`` (bound
        and constraint violations).
    """
    meta = problem.meta
    ncon = meta.ncon
    _require(state, "gx")
    if ncon > 0:
        _require(state, "cx", "Jx")
        if state.nc != ncon:
            raise PreconditionError(f"cx has {state.nc} entries, the model has {ncon} constraints")
    if state.n != meta.nvar:
        raise PreconditionError(f"x has {state.n} entries, the model has {meta.nvar} variables")

    mu, lambda_ = multipliers_of(problem, state, active_prec_c, active_prec_b)
    x = state.x

    stationarity = state.gx + mu
    complementary = _complementarity(mu, x, meta.lvar, meta.uvar)
    sign = _sign_violation(mu, x, meta.lvar, meta.uvar)
    primal_bounds = np.concatenate(
        [np.maximum(meta.lvar - x, 0.0), np.maximum(x - meta.uvar, 0.0)]
    )
    primal_cons = np.zeros(0)
    if ncon > 0:
        stationarity = stationarity + state.Jx.T @ lambda_
        complementary = np.concatenate(
            [complementary, _complementarity(lambda_, state.cx, meta.lcon, meta.ucon)]
        )
        sign = np.concatenate([sign, _sign_violation(lambda_, state.cx, meta.lcon, meta.ucon)])
        primal_cons = np.concatenate(
            [np.maximum(meta.lcon - state.cx, 0.0), np.maximum(state.cx - meta.ucon, 0.0)]
        )

    return {
        "dual": _norm(stationarity, ord),
        "complementary": _norm(complementary, ord),
        "sign": _norm(sign, ord),
        "primal_bounds": _norm(primal_bounds, ord),
        "primal_cons": _norm(primal_cons, ord),
    }


def KKT(
    problem,
    state: NLPAtX,
    ord: float = np.inf,
    active_prec_c: float = ACTIVE_PREC,
    active_prec_b: float = ACTIVE_PREC,
) -> Tuple[float, float]:
    """
    Return ``(optimality, feasibility)`` for a constrained problem.

    Optimality is the largest of the dual, complementarity and sign
    residuals, feasibility the larger of the bound and constraint violations.
    """
    residuals = kkt_residuals(problem, state, ord, active_prec_c, active_prec_b)
    optimality = max(residuals["dual"], residuals["complementary"], residuals["sign"])
    feasibility = max(residuals["primal_bounds"], residuals["primal_cons"])
    return optimality, feasibility


def is_kkt_optimal(
    problem,
    state: NLPAtX,
    tol: float = 1e-6,
    feas_tol: Optional[float] = None,
) -> bool:
    """
    Return True if the KKT residuals are below the tolerances.
    """
    optimality, feasibility = KKT(problem, state)
    return optimality <= tol and feasibility <= (tol if feas_tol is None else feas_tol)


__all__ = [
    "unconstrained_residual",
    "multipliers_of",
    "kkt_residuals",
    "KKT",
    "is_kkt_optimal",
]
