"""
Basic logging configuration for the application.

The ``setup_logging`` function configures the root logger with a
console handler, an optional file handler for all records and an
optional error-only file handler.  Log format includes the timestamp,
logger name, log level and message.  This module ensures that logging
is set up exactly once.
"""

import logging
from pathlib import Path
from typing import Optional


def setup_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    error_logfile: Optional[str] = None,
) -> None:
    """Configure root logger.

    If no handlers are attached to the root logger, attach a console
    handler and optionally file handlers.  The root logger's level is
    set based on the provided ``level``.

    Parameters
    ----------
    level : str
        Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).  Case
        insensitive.
    logfile : Optional[str]
        Path to a file receiving every record.  If omitted, no such
        handler is added.
    error_logfile : Optional[str]
        Path to a file receiving only ``ERROR`` and ``CRITICAL``
        records.  Paths are resolved relative to the current working
        directory.
    """
    logger = logging.getLogger()
    if logger.handlers:
        # Already configured (tests, repeated ``create_app`` calls).
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if logfile:
        file_handler = logging.FileHandler(Path(logfile).resolve(), encoding="utf-8", delay=True)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if error_logfile:
        error_handler = logging.FileHandler(Path(error_logfile).resolve(), encoding="utf-8", delay=True)
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        logger.addHandler(error_handler)
