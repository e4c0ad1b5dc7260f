"""Termination tests for iterative optimization algorithms.

Example
-------
>>> import numpy as np
>>> from stopping import FunctionModel, NLPStopping
>>> model = FunctionModel(lambda x: float(x @ x), grad=lambda x: 2 * x, x0=np.ones(2))
>>> stp = NLPStopping(model, max_iter=100)
>>> state = stp.fill_in()
>>> stp.start()
False
>>> x = model.meta.x0
>>> while True:
...     x = x - 0.25 * stp.current_state.gx
...     result = stp.update_and_stop(x=x, fx=model.obj(x), gx=model.grad(x))
...     if result.done:
...         break
>>> result.optimal
True
"""

__version__ = "0.1.0"

from .core import (
    ATOL,
    FEAS_TOL,
    RTOL,
    StopInfo,
    StoppingMeta,
    StoppingStatus,
    StopResult,
    check_null,
)
from .debug_mode import debug_context, is_debug_enabled, set_debug_enabled
from .exceptions import ConfigurationError, PreconditionError, StoppingError
from .generic import GenericStopping
from .kkt import KKT, is_kkt_optimal, kkt_residuals, unconstrained_residual
from .line_search import LineSearchStopping, armijo, armijo_wolfe, wolfe
from .logging import configure_logging, get_logger, set_log_level
from .models import Counters, FunctionModel, LineModel, NLPModel, NLPModelMeta
from .multipliers import active_set, compute_multiplier, licq_holds
from .nlp import NLPStopping
from .state import LSAtT, NLPAtX

__all__ = [
    "__version__",
    # Core types
    "ATOL",
    "RTOL",
    "FEAS_TOL",
    "StoppingMeta",
    "StoppingStatus",
    "StopInfo",
    "StopResult",
    "check_null",
    # Errors
    "StoppingError",
    "PreconditionError",
    "ConfigurationError",
    # Models and states
    "NLPModel",
    "NLPModelMeta",
    "Counters",
    "FunctionModel",
    "LineModel",
    "NLPAtX",
    "LSAtT",
    # Stopping machines
    "GenericStopping",
    "NLPStopping",
    "LineSearchStopping",
    # Optimality functions
    "unconstrained_residual",
    "kkt_residuals",
    "KKT",
    "is_kkt_optimal",
    "armijo",
    "wolfe",
    "armijo_wolfe",
    # Multipliers
    "active_set",
    "compute_multiplier",
    "licq_holds",
    # Logging and debugging
    "get_logger",
    "set_log_level",
    "configure_logging",
    "is_debug_enabled",
    "set_debug_enabled",
    "debug_context",
]
