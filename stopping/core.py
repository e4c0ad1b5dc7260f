"""Core types shared by every stopping specialization.

The configuration of a stopping machine (:class:`StoppingMeta`) is frozen
once built. What changes during a solve lives elsewhere: the iterate in the
state record, the machine's :class:`StoppingStatus`, and the
:class:`StopResult` returned by each ``stop`` call.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, NamedTuple, Optional

from .exceptions import ConfigurationError
from .models import Counters

ATOL = 1e-6
RTOL = 1e-15
FEAS_TOL = 1e-6
UNBOUNDED_THRESHOLD = 1e50
UNBOUNDED_X = 1e50
MAX_ITER = 5000
MAX_TIME = 300.0
MAX_EVAL = 20000
ACTIVE_PREC = 1e-6


class StoppingStatus(Enum):
    """Lifecycle of a stopping machine."""

    UNSTARTED = "unstarted"
    RUNNING = "running"
    OPTIMAL = "optimal"
    UNBOUNDED = "unbounded"
    TIRED = "tired"

    @property
    def is_terminal(self) -> bool:
        return self in (StoppingStatus.OPTIMAL, StoppingStatus.UNBOUNDED, StoppingStatus.TIRED)


@dataclass(frozen=True)
class StoppingMeta:
    """
    Tolerances and resource limits of a stopping machine.

    Attributes:
        atol: Absolute optimality tolerance.
        rtol: Relative optimality tolerance, scaled by ``optimality0``.
        feas_tol: Feasibility tolerance for constrained problems.
        optimality0: Baseline residual; overwritten at ``start``.
        unbounded_threshold: Objective values ``<= -unbounded_threshold``
            flag the problem as unbounded.
        unbounded_x: Iterates with ``||x||_inf >= unbounded_x`` flag the
            problem as unbounded.
        max_iter: Iteration limit.
        max_time: Wall-clock limit in seconds.
        max_eval: Limit on the total number of model evaluations.
        max_f: Limit on the number of objective evaluations.
        max_cntrs: Per-counter limits keyed by :class:`Counters` field name.
        active_prec_b: Bound activity threshold for multiplier estimates.
        active_prec_c: Constraint activity threshold for multiplier estimates.
    """

    atol: float = ATOL
    rtol: float = RTOL
    feas_tol: float = FEAS_TOL
    optimality0: float = 1.0
    unbounded_threshold: float = UNBOUNDED_THRESHOLD
    unbounded_x: float = UNBOUNDED_X
    max_iter: int = MAX_ITER
    max_time: float = MAX_TIME
    max_eval: int = MAX_EVAL
    max_f: float = math.inf
    max_cntrs: Mapping[str, int] = field(default_factory=dict)
    active_prec_b: float = ACTIVE_PREC
    active_prec_c: float = ACTIVE_PREC

    def __post_init__(self) -> None:
        for name in ("atol", "rtol", "feas_tol", "optimality0", "active_prec_b", "active_prec_c"):
            value = getattr(self, name)
            if not value >= 0:
                raise ConfigurationError(f"{name} must be non-negative, got {value!r}")
        limits = (
            "unbounded_threshold",
            "unbounded_x",
            "max_iter",
            "max_time",
            "max_eval",
            "max_f",
        )
        for name in limits:
            value = getattr(self, name)
            if not value > 0:
                raise ConfigurationError(f"{name} must be positive, got {value!r}")
        unknown = set(self.max_cntrs) - set(Counters.names())
        if unknown:
            raise ConfigurationError(
                f"Unknown counters in max_cntrs: {sorted(unknown)}; "
                f"expected a subset of {list(Counters.names())}"
            )
        for name, limit in self.max_cntrs.items():
            if not limit > 0:
                raise ConfigurationError(f"max_cntrs[{name!r}] must be positive, got {limit!r}")
        object.__setattr__(self, "max_cntrs", dict(self.max_cntrs))

    def replace(self, **changes) -> "StoppingMeta":
        """Return a validated copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def optimality_tolerance(self, optimality0: Optional[float] = None) -> float:
        """Effective tolerance ``max(atol, rtol * optimality0)``."""
        base = self.optimality0 if optimality0 is None else optimality0
        return max(self.atol, self.rtol * base)


@dataclass
class StopInfo:
    """
    Fine-grained outcome of a single ``stop`` call.

    Attributes:
        optimality: Optimality residual (``nan`` when it could not be computed).
        feasibility: Feasibility residual, ``None`` for unconstrained checks.
        optimality_tol: Tolerance the optimality residual was compared with.
        x_too_large: ``||x||_inf`` reached ``unbounded_x``.
        f_too_large: Objective reached ``-unbounded_threshold``.
        time_limit: Elapsed time reached ``max_time``.
        iteration_limit: Iteration reached ``max_iter``.
        evaluation_limit: Name of the first exhausted evaluation budget.
        domain_error: The iterate or objective contains NaN.
        iteration: Iteration number the check was made for.
        elapsed_time: Seconds since ``start``.
    """

    optimality: float
    feasibility: Optional[float]
    optimality_tol: float
    x_too_large: bool = False
    f_too_large: bool = False
    time_limit: bool = False
    iteration_limit: bool = False
    evaluation_limit: Optional[str] = None
    domain_error: bool = False
    iteration: int = 0
    elapsed_time: float = 0.0

    def reasons(self) -> list[str]:
        """Names of the sub-checks that fired."""
        fired = [
            name
            for name in (
                "x_too_large",
                "f_too_large",
                "time_limit",
                "iteration_limit",
                "domain_error",
            )
            if getattr(self, name)
        ]
        if self.evaluation_limit is not None:
            fired.append(f"evaluation_limit:{self.evaluation_limit}")
        return fired


class StopResult(NamedTuple):
    """Headline outcome of ``stop``: ``(optimal, unbounded, tired, elapsed_time, info)``."""

    optimal: bool
    unbounded: bool
    tired: bool
    elapsed_time: float
    info: StopInfo

    @property
    def done(self) -> bool:
        return self.optimal or self.unbounded or self.tired

    @property
    def status(self) -> StoppingStatus:
        """Terminal status implied by the booleans, first match wins."""
        if self.optimal:
            return StoppingStatus.OPTIMAL
        if self.unbounded:
            return StoppingStatus.UNBOUNDED
        if self.tired:
            return StoppingStatus.TIRED
        return StoppingStatus.RUNNING


def check_null(residual: float, tol: float) -> bool:
    """Return True if ``residual`` satisfies the tolerance ``tol``."""
    return residual <= tol


__all__ = [
    "ATOL",
    "RTOL",
    "FEAS_TOL",
    "UNBOUNDED_THRESHOLD",
    "UNBOUNDED_X",
    "MAX_ITER",
    "MAX_TIME",
    "MAX_EVAL",
    "ACTIVE_PREC",
    "StoppingStatus",
    "StoppingMeta",
    "StopInfo",
    "StopResult",
    "check_null",
]
