"""Debug mode for the stopping machines.

In debug mode every ``stop`` call logs its complete
:class:`~stopping.core.StopInfo`, and a NaN optimality residual raises
:class:`~stopping.exceptions.PreconditionError` instead of quietly counting
as "not optimal". The full records are emitted at DEBUG level, so turning
debug mode on through :func:`debug_context` (or ``set_debug_enabled`` with
``verbose=True``) also lowers the stopping loggers to DEBUG.

The initial state is read from the ``STOPPING_DEBUG`` environment variable.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from .logging import capture_levels, restore_levels, set_log_level

ENV_VAR = "STOPPING_DEBUG"
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _read_env() -> bool:
    return os.getenv(ENV_VAR, "").strip().lower() in _TRUE_VALUES


_debug_enabled: bool = _read_env()


def is_debug_enabled() -> bool:
    """Return whether ``stop`` currently runs its debug checks and logging."""
    return _debug_enabled


def set_debug_enabled(enabled: bool, verbose: bool = False) -> None:
    """
    Switch debug mode on or off for the whole process.

    Parameters
    ----------
    enabled:
        New debug state.
    verbose:
        When enabling, also set every stopping logger to DEBUG so the full
        stop information is printed. Log levels are left alone otherwise.
    """
    global _debug_enabled
    _debug_enabled = bool(enabled)
    if _debug_enabled and verbose:
        set_log_level(logging.DEBUG)


@contextmanager
def debug_context(enabled: bool = True) -> Iterator[None]:
    """
    Run a block with debug mode switched to ``enabled``.

    Enabling also lowers the stopping loggers to DEBUG for the block. The
    previous flag and log levels are restored on exit.

    Example
    -------
    >>> with debug_context():
    ...     result = stp.stop()
    """
    global _debug_enabled
    previous = _debug_enabled
    levels = capture_levels()
    _debug_enabled = bool(enabled)
    if _debug_enabled:
        set_log_level(logging.DEBUG)
    try:
        yield
    finally:
        _debug_enabled = previous
        restore_levels(levels)


__all__ = ["ENV_VAR", "is_debug_enabled", "set_debug_enabled", "debug_context"]
