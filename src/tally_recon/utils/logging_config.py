"""Logging configuration for the reconciliation engine."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..config import LoggingConfig

LOGGER_NAMESPACE = "tally_recon"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO)
        log_file: Optional path to log file
        log_format: Optional custom log format string

    Returns:
        Configured logger instance
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(level)

    # Repeated CLI invocations in one process must not stack handlers
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    return logger


def resolve_level(name: str) -> int:
    """
    Map a level name such as "info" to its logging constant.

    Raises:
        ConfigurationError: If the name is not a logging level
    """
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {name}")
    return level


def setup_logging_from_config(config: "LoggingConfig", verbose: bool = False) -> logging.Logger:
    """Apply the logging section of the configuration; verbose forces DEBUG."""
    level = logging.DEBUG if verbose else resolve_level(config.level)
    log_file = Path(config.file) if config.file else None
    return setup_logging(level, log_file, config.format)
