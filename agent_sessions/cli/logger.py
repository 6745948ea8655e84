"""
CLI logging setup.

Services log through the standard `logging` module; the CLI routes those
records to stderr as `[LEVEL] message` so stdout stays clean for output.
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = 'agent_sessions'


def verbosity_level(verbose: int) -> int:
    """Map -v count to a level: warnings by default, INFO with -v, DEBUG with -vv."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(verbose: int = 0) -> logging.Logger:
    """
    Attach a stderr handler to the package logger.

    Safe to call more than once (e.g. from tests): the previous handler is replaced.

    Args:
        verbose: Number of -v flags given

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, '_agent_sessions_cli', False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
    handler._agent_sessions_cli = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(verbosity_level(verbose))
    logger.propagate = False
    return logger
