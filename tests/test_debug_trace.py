"""Tests for category-tagged trace output.

Run with:
    python -m pytest tests/test_debug_trace.py -v
"""
from __future__ import annotations

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import debug_trace
from debug_trace import set_enabled, trace, trace_call, trace_exception


@pytest.fixture()
def tracing(caplog):
    set_enabled(True)
    caplog.set_level(logging.DEBUG, logger="slidepin.trace")
    yield caplog
    set_enabled(False)


class TestTrace:

    def test_disabled_emits_nothing(self, caplog):
        set_enabled(False)
        caplog.set_level(logging.DEBUG, logger="slidepin.trace")
        trace("hidden", "RENDER")
        assert "hidden" not in caplog.text

    def test_category_tag(self, tracing):
        trace("3 pin(s)", "RENDER")
        assert "[RENDER] 3 pin(s)" in tracing.text

    def test_quiet_category_suppressed(self, tracing):
        trace("index = 2", "POLL")
        assert "index = 2" not in tracing.text

    def test_quiet_categories_can_be_reenabled(self, tracing):
        set_enabled(True, quiet=False)
        trace("index = 3", "POLL")
        assert "[POLL] index = 3" in tracing.text

        set_enabled(True)
        trace("index = 4", "POLL")
        assert "index = 4" not in tracing.text
        assert "POLL" in debug_trace.QUIET_CATEGORIES

    def test_trace_call_wraps_entry_exit_and_errors(self, tracing):
        @trace_call("TEST")
        def ok():
            return 42

        @trace_call("TEST")
        def fails():
            raise ValueError("bad")

        assert ok() == 42
        with pytest.raises(ValueError):
            fails()
        assert ">>> " in tracing.text and "<<< " in tracing.text
        assert "raised ValueError: bad" in tracing.text

    def test_trace_exception(self, tracing):
        try:
            raise RuntimeError("viewport gone")
        except RuntimeError:
            trace_exception("provider")
        assert "[ERROR] provider" in tracing.text
        assert "viewport gone" in tracing.text

    def test_close_log_without_file(self):
        debug_trace.close_log()
        assert debug_trace._file_handler is None
