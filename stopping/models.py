"""Model interface consumed by the stopping machinery.

A model bundles the evaluation routines of an optimization problem
(objective, gradient, constraints, Jacobian) with its metadata (dimensions
and bounds) and the evaluation counters. Bound conventions follow the usual
NLP layout: ``lvar <= x <= uvar`` and ``lcon <= c(x) <= ucon``, where
``-np.inf`` / ``np.inf`` mark free sides and ``lcon == ucon`` marks an
equality.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Callable, Optional

import numpy as np

from .exceptions import PreconditionError
from .utils import Array, approx_grad, approx_jacobian, as_vector, check_dimension


@dataclass
class NLPModelMeta:
    """Dimensions, starting point and bounds of a model."""

    nvar: int
    ncon: int = 0
    x0: Optional[Array] = None
    lvar: Optional[Array] = None
    uvar: Optional[Array] = None
    lcon: Optional[Array] = None
    ucon: Optional[Array] = None

    def __post_init__(self) -> None:
        if self.nvar < 0 or self.ncon < 0:
            raise PreconditionError("nvar and ncon must be non-negative")
        self.x0 = self._vector(self.x0, self.nvar, 0.0, "x0")
        self.lvar = self._vector(self.lvar, self.nvar, -np.inf, "lvar")
        self.uvar = self._vector(self.uvar, self.nvar, np.inf, "uvar")
        self.lcon = self._vector(self.lcon, self.ncon, -np.inf, "lcon")
        self.ucon = self._vector(self.ucon, self.ncon, np.inf, "ucon")

    @staticmethod
    def _vector(value, size: int, fill: float, name: str) -> Array:
        if value is None:
            return np.full(size, fill, dtype=float)
        vec = as_vector(value, name)
        check_dimension(vec, size, name)
        return vec

    @property
    def has_bounds(self) -> bool:
        return bool(np.any(np.isfinite(self.lvar)) or np.any(np.isfinite(self.uvar)))

    @property
    def is_constrained(self) -> bool:
        """True when the model has constraints or at least one finite bound."""
        return self.ncon > 0 or self.has_bounds


@dataclass
class Counters:
    """Number of evaluations performed on a model."""

    neval_obj: int = 0
    neval_grad: int = 0
    neval_cons: int = 0
    neval_jac: int = 0
    neval_hess: int = 0

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def total(self) -> int:
        return sum(self.as_dict().values())

    def reset(self) -> None:
        for name in self.names():
            setattr(self, name, 0)

    def as_dict(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in self.names()}


class NLPModel(ABC):
    """
    Capability interface required by the stopping machinery.

    Implementations expose ``meta`` and ``counters`` and the four evaluation
    routines below. The stopping classes only read the model; evaluating it
    updates the model's own counters.
    """

    meta: NLPModelMeta
    counters: Counters

    @abstractmethod
    def obj(self, x: Array) -> float:
        """Objective value at ``x``."""

    @abstractmethod
    def grad(self, x: Array) -> Array:
        """Objective gradient at ``x``, shape ``(nvar,)``."""

    @abstractmethod
    def cons(self, x: Array) -> Array:
        """Constraint values at ``x``, shape ``(ncon,)``."""

    @abstractmethod
    def jac(self, x: Array) -> Array:
        """Constraint Jacobian at ``x``, shape ``(ncon, nvar)``."""

    def hess(self, x: Array) -> Array:
        """Objective Hessian at ``x``; optional capability."""
        raise NotImplementedError(f"{self.__class__.__name__} does not provide hess")

    def reset(self) -> None:
        self.counters.reset()


class FunctionModel(NLPModel):
    """
    Model assembled from plain callables.

    Missing derivatives are replaced by central finite differences; the
    objective or constraint evaluations spent on them are counted as such.

    Example
    -------
    >>> import numpy as np
    >>> model = FunctionModel(lambda x: float(x @ x), x0=np.ones(2))
    >>> model.grad(np.ones(2))
    array([2., 2.])
    """

    def __init__(
        self,
        fun: Callable[[Array], float],
        x0: Optional[Array] = None,
        *,
        nvar: Optional[int] = None,
        grad: Optional[Callable[[Array], Array]] = None,
        hess: Optional[Callable[[Array], Array]] = None,
        cons: Optional[Callable[[Array], Array]] = None,
        jac: Optional[Callable[[Array], Array]] = None,
        ncon: Optional[int] = None,
        lvar: Optional[Array] = None,
        uvar: Optional[Array] = None,
        lcon: Optional[Array] = None,
        ucon: Optional[Array] = None,
    ) -> None:
        if x0 is None and nvar is None:
            raise PreconditionError("FunctionModel needs x0 or nvar")
        if x0 is not None:
            x0 = as_vector(x0, "x0")
            nvar = x0.size if nvar is None else nvar
        if cons is None:
            ncon = 0
        elif ncon is None:
            start = x0 if x0 is not None else np.zeros(nvar)
            ncon = np.asarray(cons(start), dtype=float).size
        self.fun = fun
        self._grad = grad
        self._hess = hess
        self._cons = cons
        self._jac = jac
        self.meta = NLPModelMeta(
            nvar=nvar, ncon=ncon, x0=x0, lvar=lvar, uvar=uvar, lcon=lcon, ucon=ucon
        )
        self.counters = Counters()

    def obj(self, x: Array) -> float:
        self.counters.neval_obj += 1
        return float(self.fun(x))

    def grad(self, x: Array) -> Array:
        if self._grad is not None:
            self.counters.neval_grad += 1
            return np.asarray(self._grad(x), dtype=float)
        grad, evals = approx_grad(self.fun, x, return_evals=True)
        self.counters.neval_obj += int(evals)
        return grad

    def cons(self, x: Array) -> Array:
        if self._cons is None:
            return np.zeros(0)
        self.counters.neval_cons += 1
        return np.asarray(self._cons(x), dtype=float).reshape(-1)

    def jac(self, x: Array) -> Array:
        n = self.meta.nvar
        if self._cons is None:
            return np.zeros((0, n))
        if self._jac is not None:
            self.counters.neval_jac += 1
            return np.asarray(self._jac(x), dtype=float).reshape(self.meta.ncon, n)
        jac, evals = approx_jacobian(
            self._cons, x, ncon=self.meta.ncon, return_evals=True
        )
        self.counters.neval_cons += int(evals)
        return jac

    def hess(self, x: Array) -> Array:
        if self._hess is None:
            return super().hess(x)
        self.counters.neval_hess += 1
        return np.asarray(self._hess(x), dtype=float)


class LineModel(NLPModel):
    """
    One-dimensional restriction ``h(t) = f(x + t d)`` of another model.

    The derivative is ``h'(t) = grad f(x + t d) . d``. Evaluations go through
    the wrapped model, so they are counted on its counters.
    """

    def __init__(self, model: NLPModel, x: Array, d: Array) -> None:
        self.model = model
        self.x = as_vector(x, "x")
        self.d = as_vector(d, "d")
        check_dimension(self.x, model.meta.nvar, "x")
        check_dimension(self.d, model.meta.nvar, "d")
        self.meta = NLPModelMeta(nvar=1, x0=np.zeros(1))

    @property
    def counters(self) -> Counters:  # type: ignore[override]
        return self.model.counters

    def point(self, t: float) -> Array:
        return self.x + float(np.asarray(t).reshape(-1)[0]) * self.d

    def obj(self, t) -> float:
        return self.model.obj(self.point(t))

    def grad(self, t) -> Array:
        return np.array([self.derivative(t)])

    def derivative(self, t) -> float:
        return float(self.model.grad(self.point(t)) @ self.d)

    def cons(self, t) -> Array:
        return np.zeros(0)

    def jac(self, t) -> Array:
        return np.zeros((0, 1))


__all__ = ["NLPModelMeta", "Counters", "NLPModel", "FunctionModel", "LineModel"]
