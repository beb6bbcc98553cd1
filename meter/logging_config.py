"""Logging configuration for pathmeter."""
from __future__ import annotations

import logging
import os
import sys

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level: str = "") -> int:
    """Configure application-wide logging to stderr.

    *level* wins over the ``PATHMETER_LOG_LEVEL`` environment variable;
    with neither set the level is WARNING, which keeps the terminal
    dashboard free of log noise.  Unknown names fall back to WARNING.

    Examples:
        $ PATHMETER_LOG_LEVEL=DEBUG python pathmeter.py --ping 1.1.1.1

    Returns the numeric level that was applied.
    """
    name = (level or os.environ.get("PATHMETER_LOG_LEVEL", "WARNING")).upper()
    log_level = _LEVELS.get(name, logging.WARNING)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(log_level)
    )
    return log_level
