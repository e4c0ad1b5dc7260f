"""Generic stopping state machine shared by every specialization."""

from __future__ import annotations

import math
import time
from typing import Any, Callable, Optional, Tuple, Union

import numpy as np

from .core import StopInfo, StoppingMeta, StopResult, StoppingStatus, check_null
from .debug_mode import is_debug_enabled
from .exceptions import PreconditionError
from .logging import get_logger
from .models import Counters

logger = get_logger(__name__)

Residual = Union[float, Tuple[float, Optional[float]]]
OptimalityCheck = Callable[[Any, Any], Residual]


def _never_optimal(problem: Any, state: Any) -> float:
    del problem, state
    return math.inf


def _split_residual(value: Residual) -> tuple[float, Optional[float]]:
    if isinstance(value, tuple):
        optimality, feasibility = value
        return float(optimality), None if feasibility is None else float(feasibility)
    return float(value), None


class GenericStopping:
    """
    Decide when an iterative algorithm should stop.

    The host algorithm calls :meth:`start` once and then :meth:`stop` (or
    :meth:`update_and_stop`) every iteration until one of the headline
    booleans is true. Checks are made in the fixed order optimal, unbounded,
    tired, and the first one that holds becomes the terminal status.

    Parameters
    ----------
    problem:
        Model being solved. Only read, except for the evaluation counters it
        owns.
    state:
        Iterate record mutated by the host algorithm.
    meta:
        Tolerances and limits. Extra keyword arguments are applied on top of
        it (or used to build one).
    optimality_check:
        ``callable(problem, state)`` returning the optimality residual, or a
        pair ``(optimality, feasibility)``. The generic machine never reports
        optimality without one.

    Example
    -------
    >>> stp = GenericStopping(model, NLPAtX(x0), max_iter=100)
    >>> stp.start()
    False
    >>> while not stp.update_and_stop(x=x_next).done:
    ...     ...
    """

    default_optimality_check: OptimalityCheck = staticmethod(_never_optimal)

    def __init__(
        self,
        problem: Any,
        state: Any,
        meta: Optional[StoppingMeta] = None,
        optimality_check: Optional[OptimalityCheck] = None,
        **meta_kwargs: Any,
    ) -> None:
        if meta is None:
            meta = StoppingMeta(**meta_kwargs)
        elif meta_kwargs:
            meta = meta.replace(**meta_kwargs)
        self.problem = problem
        self.current_state = state
        self.meta = meta
        self.optimality_check = optimality_check or self.default_optimality_check
        self.status = StoppingStatus.UNSTARTED
        self.start_time: Optional[float] = None
        self.optimality0 = meta.optimality0
        self.nb_of_stop = 0
        self.iteration = 0
        self.last_result: Optional[StopResult] = None

    @property
    def elapsed_time(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time

    @property
    def optimality_tol(self) -> float:
        return self.meta.optimality_tolerance(self.optimality0)

    def start(self, x0: Any = None) -> bool:
        """
        Reset the clock and counters and record the baseline residual.

        Returns whether the starting point already satisfies the optimality
        test. The machine enters ``RUNNING`` either way; deciding to stop is
        left to the host.
        """
        if x0 is not None:
            self.current_state.update(x=x0)
        self.start_time = time.monotonic()
        self.nb_of_stop = 0
        self.iteration = 0
        self.last_result = None
        self._record_progress(0.0)

        optimality, feasibility = self._optimality()
        # a non-finite baseline would make the relative tolerance meaningless
        self.optimality0 = optimality if math.isfinite(optimality) else self.meta.optimality0
        optimal = self._is_optimal(optimality, feasibility)
        self.status = StoppingStatus.RUNNING
        logger.info(
            "%s started: optimality0=%.3e tol=%.3e optimal=%s",
            type(self).__name__,
            self.optimality0,
            self.optimality_tol,
            optimal,
        )
        return optimal

    def stop(self, iteration: Optional[int] = None) -> StopResult:
        """
        Evaluate every termination test on the current state.

        Parameters
        ----------
        iteration:
            Current iteration number of the host algorithm; defaults to
            :attr:`iteration`, which only :meth:`update_and_stop` advances.
            Repeated calls on an unchanged state give the same answer.

        Returns
        -------
        StopResult
            ``(optimal, unbounded, tired, elapsed_time, info)``.

        Raises
        ------
        PreconditionError
            If the machine was never started, or the state lacks fields the
            optimality test needs.
        """
        if self.status is StoppingStatus.UNSTARTED:
            raise PreconditionError("stop() called before start()")
        if iteration is None:
            iteration = self.iteration
        elapsed = self.elapsed_time
        self._record_progress(elapsed)

        optimality, feasibility = self._optimality()
        info = StopInfo(
            optimality=optimality,
            feasibility=feasibility,
            optimality_tol=self.optimality_tol,
            iteration=iteration,
            elapsed_time=elapsed,
        )
        info.domain_error = self._domain_check()
        optimal = self._is_optimal(optimality, feasibility)
        unbounded = self._unbounded_check(info)
        tired = self._tired_check(info, elapsed, iteration)

        result = StopResult(optimal, unbounded, tired, elapsed, info)
        self.nb_of_stop += 1
        self.last_result = result
        self._log_result(result)

        if self.status is StoppingStatus.RUNNING and result.done:
            self.status = result.status
            logger.info(
                "%s stopped at iteration %d: %s (%s)",
                type(self).__name__,
                iteration,
                self.status.value,
                ", ".join(info.reasons()) or "optimality",
            )
        return result

    def update_and_start(self, x0: Any = None, **fields: Any) -> bool:
        """Update the state fields, then :meth:`start`."""
        if fields:
            self.current_state.update(**fields)
        return self.start(x0)

    def update_and_stop(self, iteration: Optional[int] = None, **fields: Any) -> StopResult:
        """
        Update the state fields, then :meth:`stop`.

        Each call is one iteration of the host: :attr:`iteration` is set to
        ``iteration`` when given and advanced by one otherwise.
        """
        if fields:
            self.current_state.update(**fields)
        self.iteration = self.iteration + 1 if iteration is None else iteration
        return self.stop(self.iteration)

    def reinit(self, **fields: Any) -> "GenericStopping":
        """
        Return to ``UNSTARTED``; ``fields`` are passed to the state's ``reinit``.
        """
        self.status = StoppingStatus.UNSTARTED
        self.start_time = None
        self.nb_of_stop = 0
        self.iteration = 0
        self.last_result = None
        self.optimality0 = self.meta.optimality0
        if fields:
            self.current_state.reinit(**fields)
        return self

    def _optimality(self) -> tuple[float, Optional[float]]:
        optimality, feasibility = _split_residual(
            self.optimality_check(self.problem, self.current_state)
        )
        if is_debug_enabled() and math.isnan(optimality):
            raise PreconditionError(
                f"{type(self).__name__}: optimality residual is {optimality}"
            )
        return optimality, feasibility

    def _is_optimal(self, optimality: float, feasibility: Optional[float]) -> bool:
        if not check_null(optimality, self.optimality_tol):
            return False
        return feasibility is None or check_null(feasibility, self.meta.feas_tol)

    def _point(self) -> np.ndarray:
        return np.atleast_1d(np.asarray(self.current_state.x, dtype=float))

    def _objective(self) -> Optional[float]:
        """Objective value used by the unboundedness test."""
        return getattr(self.current_state, "fx", None)

    def _unbounded_problem_check(self) -> bool:
        """Problem-specific divergence test; none by default."""
        return False

    def _unbounded_check(self, info: StopInfo) -> bool:
        x = self._point()
        info.x_too_large = x.size > 0 and float(np.max(np.abs(x))) >= self.meta.unbounded_x
        fx = self._objective()
        info.f_too_large = fx is not None and fx <= -self.meta.unbounded_threshold
        return info.x_too_large or info.f_too_large or self._unbounded_problem_check()

    def _evaluation_budget(self) -> Optional[str]:
        counters: Optional[Counters] = getattr(self.problem, "counters", None)
        if counters is None:
            return None
        if counters.total() >= self.meta.max_eval:
            return "total"
        if counters.neval_obj >= self.meta.max_f:
            return "neval_obj"
        for name, limit in self.meta.max_cntrs.items():
            if getattr(counters, name) >= limit:
                return name
        return None

    def _tired_check(self, info: StopInfo, elapsed: float, iteration: int) -> bool:
        info.time_limit = elapsed >= self.meta.max_time
        info.iteration_limit = iteration >= self.meta.max_iter
        info.evaluation_limit = self._evaluation_budget()
        return info.time_limit or info.iteration_limit or info.evaluation_limit is not None

    def _domain_check(self) -> bool:
        fx = self._objective()
        bad = bool(np.any(np.isnan(self._point()))) or (fx is not None and math.isnan(fx))
        if bad:
            logger.warning("%s: NaN in the iterate or objective", type(self).__name__)
        return bad

    def _record_progress(self, elapsed: float) -> None:
        state = self.current_state
        if hasattr(state, "current_time"):
            state.current_time = elapsed
        counters = getattr(self.problem, "counters", None)
        if counters is not None and hasattr(state, "evals"):
            state.evals = Counters(**counters.as_dict())

    def _log_result(self, result: StopResult) -> None:
        if is_debug_enabled():
            logger.debug("%s: %r", type(self).__name__, result.info)
        else:
            logger.debug(
                "iteration %d: optimality=%.3e optimal=%s unbounded=%s tired=%s",
                result.info.iteration,
                result.info.optimality,
                result.optimal,
                result.unbounded,
                result.tired,
            )


__all__ = ["GenericStopping", "OptimalityCheck"]
