"""Logging configuration using loguru."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Library code stays silent until setup_logger() is called
logger.remove()

# Global logger instance
_logger = logger


def setup_logger(
    level: str = "INFO",
    log_dir: str = "logs",
    console: bool = True,
    file: bool = True,
) -> None:
    """
    Configure the logger with console and file outputs.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        console: Enable console output
        file: Enable file output
    """
    global _logger

    # Remove any existing handlers
    _logger.remove()

    # Console format (colorized, concise); `component` is bound by get_logger()
    console_format = (
        "<green>{time:HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[component]}</cyan>:<cyan>{function}</cyan> | "
        "<level>{message}</level>"
    )

    # File format (detailed)
    file_format = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
        "{level: <8} | "
        "{extra[component]} | "
        "{name}:{function}:{line} | "
        "{message}"
    )

    _logger.configure(extra={"component": "gamesight"})

    if console:
        _logger.add(
            sys.stderr,
            format=console_format,
            level=level,
            colorize=True,
        )

    if file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Detection log (rotates daily, keeps 7 days)
        _logger.add(
            log_path / "gamesight_{time:YYYY-MM-DD}.log",
            format=file_format,
            level=level,
            rotation="00:00",
            retention="7 days",
            compression="zip",
        )

        # Error log (separate file for errors only)
        _logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            format=file_format,
            level="ERROR",
            rotation="00:00",
            retention="30 days",
            compression="zip",
        )


def get_logger(component: Optional[str] = None):
    """
    Get the configured logger instance.

    Args:
        component: Optional component name (e.g. "minimap", "player")
                   shown in each record so one detector can be filtered out
    """
    if component is None:
        return _logger
    return _logger.bind(component=component)
