"""Logging setup for the monoctl command line.

Module loggers propagate to the ``monoctl`` package logger. Records go to
stderr so stdout stays reserved for checklists and reports.
"""

from __future__ import annotations

import logging
import sys


LOG_FORMAT = "%(asctime)s [%(name)s] [%(levelname)s]: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Set the package log level; installs the stderr handler once."""
    logger = logging.getLogger("monoctl")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
