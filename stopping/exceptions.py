"""Exceptions raised by the stopping package."""

from __future__ import annotations


class StoppingError(Exception):
    """Base class for every error raised by this package."""


class PreconditionError(StoppingError, ValueError):
    """
    A caller contract was violated.

    Raised for dimension mismatches between iterate, gradient, constraint
    values and Jacobian, for state fields missing from the active
    specialization, and for ``stop`` calls on a machine that was never
    started.
    """


class ConfigurationError(StoppingError, ValueError):
    """Invalid tolerances, limits or line-search parameters."""


__all__ = ["StoppingError", "PreconditionError", "ConfigurationError"]
