"""Iterate records read by the stopping machines.

:class:`NLPAtX` holds a point of a nonlinear program together with the
quantities evaluated there. :class:`LSAtT` is its one-dimensional counterpart
for line searches, where the "point" is the step length ``t``. Both are
mutated in place by the host algorithm through ``update``.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Optional

import numpy as np

from .exceptions import PreconditionError
from .models import Counters
from .utils import Array, as_vector, check_dimension


class _IterateRecord(ABC):
    """Shared ``update`` / ``reinit`` / ``copy`` behaviour."""

    _vector_fields: tuple[str, ...] = ()
    _scalar_fields: tuple[str, ...] = ()

    def update(self, **changes: Any) -> "_IterateRecord":
        """Set the given fields, validating names and dimensions."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise PreconditionError(
                f"{type(self).__name__} has no field(s) {sorted(unknown)}"
            )
        for name, value in changes.items():
            setattr(self, name, self._coerce(name, value))
        self.validate()
        return self

    def reinit(self, **changes: Any) -> "_IterateRecord":
        """Clear every field except ``x`` (or set it anew), then apply ``changes``."""
        x = changes.pop("x", self.x)
        for f in fields(self):
            if f.name == "x":
                continue
            if f.default_factory is not MISSING:
                setattr(self, f.name, f.default_factory())
            else:
                setattr(self, f.name, f.default)
        self.x = self._coerce("x", x)
        return self.update(**changes)

    def copy(self) -> "_IterateRecord":
        return copy.deepcopy(self)

    def _coerce(self, name: str, value: Any) -> Any:
        if value is None:
            return None
        if name in self._vector_fields:
            return as_vector(value, name)
        if name in self._scalar_fields:
            return float(value)
        return value

    @abstractmethod
    def validate(self) -> None:
        """Raise PreconditionError if the fields are inconsistent."""


@dataclass(eq=False)
class NLPAtX(_IterateRecord):
    """
    Current iterate of a nonlinear program.

    Attributes:
        x: Current point, shape ``(n,)``.
        fx: Objective value.
        gx: Objective gradient, shape ``(n,)``.
        Hx: Objective Hessian (or an approximation), shape ``(n, n)``.
        mu: Bound multipliers, shape ``(n,)``.
        cx: Constraint values, shape ``(nc,)``.
        Jx: Constraint Jacobian, shape ``(nc, n)``.
        lambda_: Constraint multipliers, shape ``(nc,)``.
        current_time: Seconds elapsed since ``start``, set by ``stop``.
        evals: Counter snapshot, set by ``stop``.
    """

    x: Array
    fx: Optional[float] = None
    gx: Optional[Array] = None
    Hx: Optional[Array] = None
    mu: Optional[Array] = None
    cx: Optional[Array] = None
    Jx: Optional[Array] = None
    lambda_: Optional[Array] = None
    current_time: Optional[float] = None
    evals: Counters = field(default_factory=Counters)

    _vector_fields = ("x", "gx", "mu", "cx", "lambda_")
    _scalar_fields = ("fx", "current_time")
    # multipliers estimated at one point are stale once any of these moves
    _multiplier_inputs = ("x", "gx", "cx", "Jx")

    def __post_init__(self) -> None:
        for f in fields(self):
            setattr(self, f.name, self._coerce(f.name, getattr(self, f.name)))
        self.validate()

    def update(self, **changes: Any) -> "NLPAtX":
        """
        Set the given fields, validating names and dimensions.

        Changing ``x``, ``gx``, ``cx`` or ``Jx`` clears ``mu`` and ``lambda_``
        unless new multipliers are passed in the same call, so the KKT test
        re-estimates them at the new point.
        """
        if any(name in changes for name in self._multiplier_inputs):
            changes.setdefault("mu", None)
            changes.setdefault("lambda_", None)
        return super().update(**changes)

    @property
    def n(self) -> int:
        return self.x.size

    @property
    def nc(self) -> int:
        return 0 if self.cx is None else self.cx.size

    def _coerce(self, name: str, value: Any) -> Any:
        if value is not None and name in ("Hx", "Jx"):
            return np.atleast_2d(np.asarray(value, dtype=float))
        return super()._coerce(name, value)

    def validate(self) -> None:
        if self.x is None:
            raise PreconditionError("NLPAtX requires a point x")
        n = self.n
        for name in ("gx", "mu"):
            value = getattr(self, name)
            if value is not None:
                check_dimension(value, n, name)
        if self.Hx is not None and self.Hx.shape != (n, n):
            raise PreconditionError(f"Hx has shape {self.Hx.shape}, expected ({n}, {n})")
        if self.cx is None:
            if self.lambda_ is not None and self.lambda_.size > 0:
                raise PreconditionError("lambda_ given without constraint values cx")
            return
        nc = self.nc
        if self.lambda_ is not None:
            check_dimension(self.lambda_, nc, "lambda_")
        if self.Jx is not None and nc > 0 and self.Jx.shape != (nc, n):
            raise PreconditionError(f"Jx has shape {self.Jx.shape}, expected ({nc}, {n})")


@dataclass(eq=False)
class LSAtT(_IterateRecord):
    """
    Current trial step of a line search on ``h(t) = f(x + t d)``.

    Attributes:
        x: Step length ``t``.
        ht: ``h(t)``.
        gt: ``h'(t)``.
        h0: ``h(0)``.
        g0: ``h'(0)``.
        current_time: Seconds elapsed since ``start``, set by ``stop``.
        evals: Counter snapshot, set by ``stop``.
    """

    x: float
    ht: Optional[float] = None
    gt: Optional[float] = None
    h0: Optional[float] = None
    g0: Optional[float] = None
    current_time: Optional[float] = None
    evals: Counters = field(default_factory=Counters)

    _scalar_fields = ("x", "ht", "gt", "h0", "g0", "current_time")

    def __post_init__(self) -> None:
        for f in fields(self):
            setattr(self, f.name, self._coerce(f.name, getattr(self, f.name)))

    def _coerce(self, name: str, value: Any) -> Any:
        if value is not None and name in self._scalar_fields:
            arr = np.asarray(value, dtype=float)
            if arr.size != 1:
                raise PreconditionError(f"{name} must be a scalar, got shape {arr.shape}")
            return float(arr.reshape(-1)[0])
        return super()._coerce(name, value)

    def validate(self) -> None:
        return None


__all__ = ["NLPAtX", "LSAtT"]
