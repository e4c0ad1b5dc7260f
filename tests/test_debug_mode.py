"""Tests for debug mode functionality."""

import importlib
import logging
from io import StringIO

import numpy as np

from stopping import (
    FunctionModel,
    NLPStopping,
    configure_logging,
    debug_context,
    get_logger,
    is_debug_enabled,
    set_debug_enabled,
    set_log_level,
)
from stopping import debug_mode


def test_debug_mode_toggle_and_context() -> None:
    """Test debug mode toggling and context manager."""
    set_debug_enabled(False)
    assert not is_debug_enabled()

    with debug_context(True):
        assert is_debug_enabled()

    # Back to previous (False in this block)
    assert not is_debug_enabled()

    set_debug_enabled(True)
    with debug_context(False):
        assert not is_debug_enabled()
    assert is_debug_enabled()


def test_debug_context_nested() -> None:
    """Test nested debug contexts."""
    with debug_context(True):
        with debug_context(False):
            assert not is_debug_enabled()
        assert is_debug_enabled()
    assert not is_debug_enabled()


def test_debug_flag_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("STOPPING_DEBUG", "yes")
    try:
        importlib.reload(debug_mode)
        assert is_debug_enabled()
    finally:
        monkeypatch.delenv("STOPPING_DEBUG")
        importlib.reload(debug_mode)
    assert not is_debug_enabled()


def test_debug_mode_logs_full_stop_information() -> None:
    model = FunctionModel(lambda x: float(x @ x), grad=lambda x: 2 * x, x0=np.ones(2))
    stream = StringIO()
    try:
        configure_logging(level=logging.DEBUG, stream=stream)
        stp = NLPStopping(model)
        stp.fill_in()
        stp.start()
        stp.stop()
        assert "StopInfo(" not in stream.getvalue()
        with debug_context(True):
            stp.stop()
        assert "StopInfo(" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_debug_context_raises_log_level_for_its_block() -> None:
    model = FunctionModel(lambda x: float(x @ x), grad=lambda x: 2 * x, x0=np.ones(2))
    stream = StringIO()
    try:
        configure_logging(level=logging.WARNING, stream=stream)
        logger = get_logger("stopping.generic")
        stp = NLPStopping(model)
        stp.fill_in()
        stp.start()
        with debug_context(True):
            assert logger.level == logging.DEBUG
            stp.stop()
        assert "StopInfo(" in stream.getvalue()
        assert logger.level == logging.WARNING
        assert not is_debug_enabled()
    finally:
        configure_logging(level=logging.WARNING)


def test_verbose_enable_sets_debug_level() -> None:
    try:
        set_debug_enabled(True, verbose=True)
        assert get_logger("stopping.generic").level == logging.DEBUG
    finally:
        set_debug_enabled(False)
        set_log_level(logging.WARNING)
