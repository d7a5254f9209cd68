"""
Core logging functionality for bleclient.

Every record is written, unformatted, to one file per log type under the
per-user data directory.  ``print_and_log`` additionally echoes user-facing
lines to the terminal.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional
from . import config

# Re-export log type constants for external modules
LOG__GENERAL = config.LOG__GENERAL
LOG__DEBUG = config.LOG__DEBUG
LOG__SESSION = config.LOG__SESSION

_LOG_PATHS: Dict[str, Path] = {
    LOG__GENERAL: config.LOG_DIR / "general.log",
    LOG__DEBUG: config.LOG_DIR / "debug.log",
    LOG__SESSION: config.LOG_DIR / "session.log",
}

# Raw message only
_formatter = logging.Formatter("%(message)s")

# Create and configure handlers
_handlers: Dict[str, logging.Handler] = {}
for log_type, path in _LOG_PATHS.items():
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
    handler.setFormatter(_formatter)
    _handlers[log_type] = handler

# Root logger for bleclient
_logger = logging.getLogger("bleclient")
_logger.setLevel(logging.INFO)
_logger.addHandler(_handlers[LOG__GENERAL])

# Clean up temporary variables
del log_type, path, handler

_console_handler: Optional[logging.Handler] = None


def _emit(line: str, log_type: str) -> None:
    """Internal helper to emit log records without altering the original message."""
    record = logging.LogRecord(
        name=f"bleclient.{log_type.lower()}",
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg=line.rstrip("\n"),
        args=(),
        exc_info=None,
    )
    _handlers.get(log_type, _handlers[LOG__GENERAL]).handle(record)
    if _console_handler is not None and log_type == LOG__DEBUG:
        _console_handler.handle(record)


def logging__debug_log(msg: str) -> None:
    """Write to debug log."""
    _emit(msg, LOG__DEBUG)


def logging__general_log(msg: str) -> None:
    """Write to general log."""
    _emit(msg, LOG__GENERAL)


def logging__session_log(msg: str) -> None:
    """Write to session log (state transitions, notifications)."""
    _emit(msg, LOG__SESSION)


# Map log type to function for convenience
_log_func_map = {
    LOG__GENERAL: logging__general_log,
    LOG__DEBUG: logging__debug_log,
    LOG__SESSION: logging__session_log,
}


def logging__log_event(log_type: str, string_to_log: str) -> None:
    """Log an event to the specified log type."""
    _log_func_map.get(log_type, logging__general_log)(string_to_log)


def print_and_log(output_string: str, log_type: str = LOG__GENERAL) -> None:
    """Print to stdout and log to the specified log type."""
    if log_type != LOG__DEBUG:
        print(output_string)
    logging__log_event(log_type, output_string)


def set_verbose(enabled: bool = True) -> None:
    """Echo debug lines and module logger records to stderr."""
    global _console_handler
    if enabled and _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stderr)
        _console_handler.setFormatter(_formatter)
        _logger.addHandler(_console_handler)
        _logger.setLevel(logging.DEBUG)
    elif not enabled and _console_handler is not None:
        _logger.removeHandler(_console_handler)
        _console_handler = None
        _logger.setLevel(logging.INFO)


# Modern interface
def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger with the specified name.

    This is the preferred way to get a logger in new code.
    The logger will automatically handle writing to the appropriate log files.
    """
    if name:
        if name.startswith("bleclient."):
            name = name[len("bleclient."):]
        return _logger.getChild(name)
    return _logger
