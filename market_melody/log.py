"""Logging setup."""

from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(module)s | %(message)s'


def setup_logger(name: str = "market_melody", level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Configure the package logger.

    Logs go to `log_file` when given (the TUI owns the terminal), otherwise
    to stderr. Calling again does not stack handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    if not logger.handlers:
        if log_file:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
