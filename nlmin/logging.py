"""
Package loggers for nlmin.

Every module logs through ``get_logger(__name__)``, which places the logger
under the ``nlmin`` hierarchy with its own stderr handler. Solver progress
is emitted at DEBUG, escalations after failed step searches at WARNING,
hard failures at ERROR and the end-of-solve summary at INFO, so the
default WARNING level only surfaces problems.

Example
-------
>>> import logging
>>> from nlmin.logging import solve_logging
>>> with solve_logging(logging.DEBUG):
...     pass  # iteration traces of any solve run here are printed
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, TextIO, Tuple, Union

PACKAGE = "nlmin"
DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

Level = Union[int, str]

_loggers: Dict[str, logging.Logger] = {}
_settings = {"level": logging.WARNING, "format": DEFAULT_FORMAT, "stream": None}


def _level(level: Level) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def _attach(logger: logging.Logger) -> None:
    """Replace the handlers of ``logger`` with one built from the current settings."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(_settings["stream"] or sys.stderr)
    handler.setLevel(_settings["level"])
    handler.setFormatter(logging.Formatter(_settings["format"]))
    logger.addHandler(handler)
    logger.setLevel(_settings["level"])


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return the cached ``nlmin`` logger for a module.

    Names outside the package are nested under it, so ``get_logger("x")``
    is ``nlmin.x``; ``None`` gives the package logger itself.
    """
    if name is None or name == PACKAGE:
        full_name = PACKAGE
    elif name.startswith(PACKAGE + "."):
        full_name = name
    else:
        full_name = f"{PACKAGE}.{name}"

    logger = _loggers.get(full_name)
    if logger is None:
        logger = logging.getLogger(full_name)
        if not logger.handlers:
            _attach(logger)
            logger.propagate = False
        _loggers[full_name] = logger
    return logger


def set_log_level(level: Level) -> None:
    """Change the level of every nlmin logger, keeping handlers and format."""
    _settings["level"] = _level(level)
    for logger in _loggers.values():
        logger.setLevel(_settings["level"])
        for handler in logger.handlers:
            handler.setLevel(_settings["level"])


def configure_logging(
    level: Level = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route all nlmin loggers to ``stream`` (stderr by default) at ``level``.

    Loggers created later pick up the same settings.
    """
    _settings["level"] = _level(level)
    _settings["format"] = format_string or DEFAULT_FORMAT
    _settings["stream"] = stream
    for logger in _loggers.values():
        _attach(logger)


@contextmanager
def solve_logging(level: Level = logging.DEBUG, stream: Optional[TextIO] = None) -> Iterator[None]:
    """Temporarily reconfigure nlmin logging, e.g. to trace a single solve."""
    previous: Tuple = (_settings["level"], _settings["format"], _settings["stream"])
    configure_logging(level, _settings["format"], stream if stream is not None else _settings["stream"])
    try:
        yield
    finally:
        configure_logging(*previous)


__all__ = ["configure_logging", "get_logger", "set_log_level", "solve_logging"]
