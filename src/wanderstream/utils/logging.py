"""Logging configuration and utilities for Wanderstream.

This module provides centralized logging setup and helper functions
for consistent logging across the application.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler


# Global logger cache
_loggers: dict[str, logging.Logger] = {}


def setup_logging(
    level: str = "WARNING",
    log_dir: Optional[Path] = None,
    session_id: Optional[str] = None,
    always_debug_file: bool = True,
) -> Path:
    """Set up logging configuration for the application.

    Args:
        level: Console logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default: WARNING.
        log_dir: Directory for log files. Defaults to 'logs' in the working directory.
        session_id: Unique session identifier for log file naming.
        always_debug_file: Always log DEBUG level to file regardless of console level.

    Returns:
        Path to the main log file.
    """
    # Convert string level to logging constant
    log_level = getattr(logging, level.upper(), logging.WARNING)

    if log_dir is None:
        log_dir = Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    if session_id is None:
        session_id = datetime.now().strftime("%Y-%m-%d_%H%M%S")

    log_file = log_dir / f"stream_{session_id}.log"

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers do the filtering

    root_logger.handlers.clear()

    console_handler = RichHandler(
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))

    # File handler with detailed formatting
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    if always_debug_file:
        file_handler.setLevel(logging.DEBUG)
    else:
        file_handler.setLevel(log_level)

    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    logger = get_logger(__name__)
    logger.debug(f"Logging initialized - Session ID: {session_id}")
    logger.debug(f"Console log level: {level}")
    logger.debug(f"Main log file: {log_file.absolute()}")

    return log_file


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger with the specified name.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Configured logger instance.
    """
    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)
    return _loggers[name]


def log_stream_transition(from_phase: str, to_phase: str, details: str = "") -> None:
    """Log a stream phase transition.

    Args:
        from_phase: Phase transitioning from
        to_phase: Phase transitioning to
        details: Optional additional details
    """
    logger = get_logger("wanderstream.streaming")
    if details:
        logger.info(f"Stream transition: {from_phase} -> {to_phase} ({details})")
    else:
        logger.info(f"Stream transition: {from_phase} -> {to_phase}")


def get_current_log_files() -> dict[str, Path]:
    """Get paths to current log files.

    Returns:
        Dictionary mapping log type to file path
    """
    log_files = {}

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            log_files["main"] = Path(handler.baseFilename)

    return log_files
