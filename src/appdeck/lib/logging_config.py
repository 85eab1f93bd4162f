"""Logging configuration for AppDeck.

All modules obtain loggers through :func:`get_logger` so that records are
grouped under the ``appdeck`` namespace and can be configured in one place.
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER_NAME = "appdeck"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s) "
    "%(filename)s:%(lineno)d: %(message)s"
)

# Third-party loggers that are noisy at DEBUG level
_NOISY_LOGGERS = ("urllib3", "requests")


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``appdeck`` namespace.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Configured logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the ``appdeck`` logger hierarchy.

    Replaces any handlers installed by a previous call, so it is safe to call
    once per CLI invocation.

    Args:
        verbose: Enable DEBUG output with source locations
        quiet: Only emit warnings and errors (ignored when verbose is set)
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(VERBOSE_FORMAT if verbose else DEFAULT_FORMAT)
    )
    root.addHandler(handler)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
