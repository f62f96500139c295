"""Logging setup for the Neeko Stats backend.

All module loggers hang off the ``neeko_stats`` logger, which owns the
handlers. Scripts run as ``__main__`` get their own handlers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from neeko_stats.config import settings

ROOT_LOGGER = "neeko_stats"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "stripe")


def setup_logger(
    name: str,
    log_file: Optional[Path] = None,
    level: Optional[str] = None,
) -> logging.Logger:
    """Attach a stdout handler (and a file handler) to ``name``.

    Args:
        name: Logger name
        log_file: Optional path to log file (defaults to ``LOG_FILE``)
        level: Log level name (defaults to ``LOG_LEVEL``)

    Returns:
        Configured logger instance
    """
    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``; package loggers share the package handlers."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        root = logging.getLogger(ROOT_LOGGER)
        if not root.handlers:
            setup_logger(ROOT_LOGGER)
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger
