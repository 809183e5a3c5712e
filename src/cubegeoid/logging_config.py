"""Logging configuration for cubegeoid.

The package logs through the ``cubegeoid`` logger, which carries a
``NullHandler`` until :func:`setup_logging` is called.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union


LOGGER_NAME = "cubegeoid"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """Configure console (and optionally file) output for cubegeoid.

    Args:
        level: Logging level, as a constant or a name such as ``"DEBUG"``.
        log_file: Optional path of a log file to write as well.
        format_string: Custom format string for log records.

    Returns:
        logging.Logger: The configured package logger.

    Examples:
        >>> from cubegeoid import setup_logging
        >>> setup_logging("DEBUG")
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info("Logging to file: %s", log_path)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the child logger ``cubegeoid.<name>``."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def set_log_level(level: Union[int, str]) -> None:
    """Change the level of the package logger and all its handlers."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


_default_logger = logging.getLogger(LOGGER_NAME)
if not _default_logger.handlers:
    _default_logger.addHandler(logging.NullHandler())
_default_logger.setLevel(logging.WARNING)
