"""
Logging infrastructure for the deobfuscator.

This module provides configurable logging with console and file output,
log rotation, and hierarchical logger management. Every module of the
package logs through a child of the ``"deobfuscator"`` logger so a single
``setup_logger`` call at start-up configures the whole tool.

Examples:
    >>> from deobfuscator.utils.logger import setup_logger
    >>> logger = setup_logger("deobfuscator", level="DEBUG", log_file=Path("logs/run.log"))
    >>> logger.info("Batch started")
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from .path_utils import ensure_directory

# Valid log levels
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Default log format strings
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
SIMPLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _check_level(level: str) -> str:
    if level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of {VALID_LOG_LEVELS}")
    return level.upper()


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Path | None = None
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Creates a logger with console output and optional file output.
    Prevents duplicate handlers if called multiple times.

    Args:
        name: Logger name (typically "deobfuscator").
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If provided, enables file logging.

    Returns:
        Configured logger instance.

    Raises:
        ValueError: If level is not a valid log level.

    Note:
        File logs use detailed format, console logs use simple format.
        Log files are rotated at 10MB with 5 backup files.
    """
    level = _check_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level))

    has_console_handler = any(
        isinstance(h, logging.StreamHandler)
        and not isinstance(h, logging.handlers.RotatingFileHandler)
        for h in logger.handlers
    )
    has_file_handler = any(
        isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers
    )

    if has_console_handler:
        for handler in logger.handlers:
            if not isinstance(handler, logging.handlers.RotatingFileHandler):
                handler.setLevel(getattr(logging, level))
    else:
        add_console_handler(logger, level)

    if log_file is not None and not has_file_handler:
        add_file_handler(logger, log_file, level="DEBUG")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve existing logger or create default logger.

    Child loggers inherit handlers from their parent via propagation, so a
    console handler is only attached when no logger up the hierarchy
    (including the root logger) has one.

    Args:
        name: Logger name, e.g. ``"deobfuscator.core.file_processor"``.

    Returns:
        Logger instance.
    """
    logger = logging.getLogger(name)

    if logger.hasHandlers():
        return logger

    parent_name = name.rsplit(".", 1)[0] if "." in name else ""
    while parent_name:
        if logging.getLogger(parent_name).handlers:
            return logger
        parent_name = parent_name.rsplit(".", 1)[0] if "." in parent_name else ""

    if logging.getLogger().handlers:
        return logger

    # Configure the package logger so that siblings share one console handler
    setup_logger(name.split(".", 1)[0])
    return logger


def set_log_level(logger: logging.Logger, level: str) -> None:
    """
    Change logging level dynamically.

    Raises:
        ValueError: If level is not valid.
    """
    logger.setLevel(getattr(logging, _check_level(level)))


def add_file_handler(
    logger: logging.Logger,
    log_file: Path,
    level: str = "DEBUG"
) -> None:
    """
    Add file output handler to logger with rotation.

    Creates the log directory if it doesn't exist. Uses a rotating file
    handler with 10MB max size and 5 backup files.

    Raises:
        ValueError: If level is not valid.
        OSError: If log directory cannot be created.
    """
    level = _check_level(level)

    ensure_directory(log_file.parent)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(getattr(logging, level))
    file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))

    logger.addHandler(file_handler)


def add_console_handler(logger: logging.Logger, level: str = "INFO") -> None:
    """
    Add console output handler to logger.

    Raises:
        ValueError: If level is not valid.
    """
    level = _check_level(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level))
    console_handler.setFormatter(logging.Formatter(SIMPLE_FORMAT))

    logger.addHandler(console_handler)
