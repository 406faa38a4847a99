"""Logging setup for the command line and error reporting helpers."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from typing import Iterator

from wfes.errors import WfesError

LOGGER_NAME = "wfes"
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.WARNING) -> logging.Logger:
    """
    Send the ``wfes`` loggers to stderr at ``level``.

    Calling it again replaces the handler instead of stacking a second one.
    Timestamps are only added at DEBUG level, where the phase timings are.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_wfes_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT if level <= logging.DEBUG else LOG_FORMAT))
    handler._wfes_handler = True
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def log_exception(logger: logging.Logger, exc: BaseException, *,
                  show_traceback: bool = False) -> str:
    """
    Log ``exc`` for a user: its user message at ERROR, details at DEBUG.

    Foreign exceptions are reported as unexpected. Returns the logged
    user message.
    """
    if isinstance(exc, WfesError):
        user_message, details = exc.user_message, exc.log_message()
    else:
        user_message, details = f"Unexpected error: {exc}", repr(exc)
    logger.error(user_message)
    logger.log(logging.ERROR if show_traceback else logging.DEBUG, details, exc_info=exc)
    return user_message


@contextmanager
def log_elapsed(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log the wall time of the enclosed block at DEBUG level."""
    start = time.perf_counter()
    yield
    logger.debug("%s: %.3gs", label, time.perf_counter() - start)


__all__ = [
    "LOGGER_NAME",
    "configure_logging",
    "log_exception",
    "log_elapsed",
]
