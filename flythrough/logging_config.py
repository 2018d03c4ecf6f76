"""Logging configuration for flythrough."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from flythrough.config import LOGS_DIR, LOG_LEVEL, LOG_FORMAT, LOG_TO_FILE


def setup_logging(
    name: str = __name__,
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Calling this twice for the same logger name does not stack handlers.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file; defaults to LOGS_DIR/<name>.log when
            LOG_TO_FILE is enabled

    Returns:
        Configured logger instance
    """
    if level is None:
        level = LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    if logger.handlers:
        return logger

    # Create formatters
    formatter = logging.Formatter(LOG_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if log_file is None and LOG_TO_FILE:
        log_file = LOGS_DIR / f"{name}.log"

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. ``flythrough.capturer``."""
    if not name.startswith("flythrough"):
        name = f"flythrough.{name}"
    return logging.getLogger(name)


# Create main logger
logger = setup_logging("flythrough")

__all__ = ["setup_logging", "get_logger", "logger"]
