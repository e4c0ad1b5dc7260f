"""Stopping for line searches following Nocedal & Wright, chapter 3.

The state is the one-dimensional :class:`~stopping.state.LSAtT` record of
``h(t) = f(x + t d)``. A trial step is optimal when the chosen acceptance
conditions hold, which the residuals below express as non-negative numbers
that vanish exactly when the condition is met.
"""

from __future__ import annotations

import functools
from typing import Any, Optional

from .core import StoppingMeta
from .exceptions import ConfigurationError, PreconditionError
from .generic import GenericStopping, OptimalityCheck
from .models import LineModel
from .state import LSAtT

TAU0 = 1e-4
TAU1 = 0.9


def _require(state: LSAtT, *names: str) -> None:
    missing = [name for name in names if getattr(state, name) is None]
    if missing:
        raise PreconditionError(f"LSAtT is missing {missing} for this line-search test")


def armijo(h: Any, h_at_t: LSAtT, tau0: float = TAU0) -> float:
    """Sufficient decrease ``h(t) <= h(0) + tau0 * t * h'(0)``, as a residual."""
    del h
    _require(h_at_t, "ht", "h0", "g0")
    return max(h_at_t.ht - h_at_t.h0 - tau0 * h_at_t.x * h_at_t.g0, 0.0)


def wolfe(h: Any, h_at_t: LSAtT, tau1: float = TAU1) -> float:
    """Strong curvature condition ``|h'(t)| <= tau1 * |h'(0)|``, as a residual."""
    del h
    _require(h_at_t, "gt", "g0")
    return max(abs(h_at_t.gt) - tau1 * abs(h_at_t.g0), 0.0)


def armijo_wolfe(h: Any, h_at_t: LSAtT, tau0: float = TAU0, tau1: float = TAU1) -> float:
    """Strong Wolfe conditions: the larger of the two residuals."""
    return max(armijo(h, h_at_t, tau0=tau0), wolfe(h, h_at_t, tau1=tau1))


_CONDITIONS = {
    "armijo": armijo,
    "wolfe": wolfe,
    "armijo_wolfe": armijo_wolfe,
}


class LineSearchStopping(GenericStopping):
    """
    Stopping machine for a line search.

    Parameters
    ----------
    problem:
        Usually a :class:`~stopping.models.LineModel`; only its counters are
        read by the stopping tests.
    state:
        Trial step record; defaults to ``LSAtT(0.0)``.
    condition:
        ``"armijo"``, ``"wolfe"`` or ``"armijo_wolfe"`` (default). Ignored
        when ``optimality_check`` is given.
    tau0, tau1:
        Armijo and curvature constants, ``0 < tau0 < tau1 < 1``.
    """

    def __init__(
        self,
        problem: Any,
        state: Optional[LSAtT] = None,
        meta: Optional[StoppingMeta] = None,
        optimality_check: Optional[OptimalityCheck] = None,
        condition: str = "armijo_wolfe",
        tau0: float = TAU0,
        tau1: float = TAU1,
        **meta_kwargs: Any,
    ) -> None:
        if not (0 < tau0 < tau1 < 1):
            raise ConfigurationError("Require 0 < tau0 < tau1 < 1 for the line-search conditions.")
        if optimality_check is None:
            if condition not in _CONDITIONS:
                raise ConfigurationError(
                    f"Unknown line-search condition {condition!r}; "
                    f"expected one of {sorted(_CONDITIONS)}"
                )
            check = _CONDITIONS[condition]
            kwargs = {
                "armijo": {"tau0": tau0},
                "wolfe": {"tau1": tau1},
                "armijo_wolfe": {"tau0": tau0, "tau1": tau1},
            }[condition]
            optimality_check = functools.partial(check, **kwargs)
        self.condition = condition
        self.tau0 = tau0
        self.tau1 = tau1
        super().__init__(
            problem, LSAtT(0.0) if state is None else state, meta, optimality_check, **meta_kwargs
        )

    def _objective(self) -> Optional[float]:
        return self.current_state.ht

    def fill_in(self, t: Optional[float] = None) -> LSAtT:
        """
        Evaluate ``h`` and ``h'`` at ``t`` (default: the current step), and
        at 0 when ``h0``/``g0`` are still unknown.
        """
        if not isinstance(self.problem, LineModel):
            raise PreconditionError("fill_in needs a LineModel problem")
        state = self.current_state
        if t is not None:
            state.update(x=t)
        h = self.problem
        fields: dict[str, Any] = {"ht": h.obj(state.x), "gt": h.derivative(state.x)}
        if state.h0 is None:
            fields["h0"] = h.obj(0.0)
        if state.g0 is None:
            fields["g0"] = h.derivative(0.0)
        state.update(**fields)
        return state


__all__ = ["TAU0", "TAU1", "armijo", "wolfe", "armijo_wolfe", "LineSearchStopping"]
