"""
debug_trace.py

Category-tagged trace output for high-frequency overlay events
(slide polling, viewport recomputation, pin rendering).

Enable with ``[debug] trace = true`` in settings.toml, or call
``set_enabled(True)`` at runtime.
"""

import logging
import traceback
from functools import wraps

log = logging.getLogger("slidepin.trace")

# Categories that are too chatty to emit even when tracing is enabled
QUIET_CATEGORIES = {"POLL"}

_enabled = None
_quiet = True
_file_handler = None


def _is_enabled() -> bool:
    global _enabled
    if _enabled is None:
        try:
            from settings import get_settings
            debug = get_settings().settings.debug
            _enabled = bool(debug.trace)
            if _enabled and debug.trace_file:
                _attach_file(debug.trace_file)
        except Exception:
            _enabled = False
    return _enabled


def _attach_file(path: str) -> None:
    global _file_handler
    if _file_handler is not None:
        return
    try:
        _file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    except OSError:
        return
    _file_handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
    log.addHandler(_file_handler)


def set_enabled(enabled: bool, quiet: bool = True) -> None:
    """Turn tracing on or off at runtime.

    Args:
        enabled: Whether trace lines are emitted.
        quiet: When False, QUIET_CATEGORIES are emitted as well.
    """
    global _enabled, _quiet
    _enabled = enabled
    _quiet = quiet


def trace(msg: str, category: str = "INFO"):
    """Emit a trace message tagged with its category."""
    if not _is_enabled():
        return
    if _quiet and category in QUIET_CATEGORIES:
        return
    log.debug("[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Emit the current exception with traceback."""
    if not _is_enabled():
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator to trace function entry, exit and exceptions."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not _is_enabled():
                return func(*args, **kwargs)
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
                trace(f"<<< {func_name}", category)
                return result
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
        return wrapper
    return decorator


def close_log():
    """Detach and close the trace file handler."""
    global _file_handler
    if _file_handler:
        log.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
