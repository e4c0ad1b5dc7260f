"""Stopping for nonlinear programs.

The optimality test is the infinity norm of the gradient for unconstrained
models and the KKT residual pair ``(optimality, feasibility)`` as soon as the
model has constraints or a finite bound.
"""

from __future__ import annotations

import functools
from typing import Any, Optional

from .core import StoppingMeta
from .exceptions import PreconditionError
from .generic import GenericStopping, OptimalityCheck
from .kkt import KKT, unconstrained_residual
from .models import NLPModel
from .multipliers import compute_multiplier
from .state import NLPAtX
from .utils import Array


class NLPStopping(GenericStopping):
    """
    Stopping machine for an :class:`~stopping.models.NLPModel`.

    Parameters
    ----------
    problem:
        Model being solved.
    state:
        Iterate record; defaults to ``NLPAtX(problem.meta.x0)``.
    meta, optimality_check, **meta_kwargs:
        See :class:`~stopping.generic.GenericStopping`. Without an explicit
        ``optimality_check`` the residual is chosen from the model's
        constraints and bounds.

    Example
    -------
    >>> model = FunctionModel(lambda x: float(x @ x), grad=lambda x: 2 * x, x0=np.ones(2))
    >>> stp = NLPStopping(model, atol=1e-8)
    >>> state = stp.fill_in()
    >>> stp.start()
    False
    """

    def __init__(
        self,
        problem: NLPModel,
        state: Optional[NLPAtX] = None,
        meta: Optional[StoppingMeta] = None,
        optimality_check: Optional[OptimalityCheck] = None,
        **meta_kwargs: Any,
    ) -> None:
        if state is None:
            state = NLPAtX(problem.meta.x0.copy())
        if state.n != problem.meta.nvar:
            raise PreconditionError(
                f"State has {state.n} variables, the model has {problem.meta.nvar}"
            )
        super().__init__(problem, state, meta, optimality_check, **meta_kwargs)
        if optimality_check is None:
            self.optimality_check = self._default_check()

    def _default_check(self) -> OptimalityCheck:
        if not self.problem.meta.is_constrained:
            return unconstrained_residual
        return functools.partial(
            KKT,
            active_prec_c=self.meta.active_prec_c,
            active_prec_b=self.meta.active_prec_b,
        )

    @property
    def is_constrained(self) -> bool:
        return self.problem.meta.is_constrained

    def fill_in(self, x: Optional[Array] = None, hessian: bool = False) -> NLPAtX:
        """
        Evaluate the model at ``x`` (default: the current point) and store
        the objective, gradient and, for constrained models, constraint values,
        Jacobian and multiplier estimates in the state. Moving the point
        through the state clears these multipliers, so the KKT test
        re-estimates them wherever the host updates the iterate itself.
        """
        state = self.current_state
        if x is not None:
            state.update(x=x)
        x = state.x
        model = self.problem
        fields: dict[str, Any] = {"fx": model.obj(x), "gx": model.grad(x)}
        if hessian:
            fields["Hx"] = model.hess(x)
        if model.meta.ncon > 0:
            fields["cx"] = model.cons(x)
            fields["Jx"] = model.jac(x)
        if self.is_constrained:
            fields["mu"], fields["lambda_"] = compute_multiplier(
                model,
                x,
                fields["gx"],
                fields.get("cx"),
                fields.get("Jx"),
                active_prec_c=self.meta.active_prec_c,
                active_prec_b=self.meta.active_prec_b,
            )
            if model.meta.ncon == 0:
                fields.pop("lambda_")
        state.update(**fields)
        return state


__all__ = ["NLPStopping"]
