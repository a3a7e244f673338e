"""
Logging configuration for the Bankroll Engine service.

Sets up structured logging with file rotation and console output.
"""

import logging
from logging.handlers import RotatingFileHandler

from .config import (
    LOG_DIR,
    LOG_FILE,
    LOG_MAX_BYTES,
    LOG_BACKUP_COUNT,
    LOG_LEVEL
)

LOGGER_NAME = "bankroll_api"


def safe_log(message: str) -> str:
    """Convert currency symbols and other non-ASCII text for Windows consoles."""
    replacements = {
        '€': 'EUR ',
        '£': 'GBP ',
        '→': '->',
        '×': 'x',
        '≥': '>=',
        '≤': '<=',
    }
    for symbol, text in replacements.items():
        message = message.replace(symbol, text)
    return message.encode("ascii", "replace").decode("ascii")


def setup_logging() -> logging.Logger:
    """
    Configure logging for the application.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    # setup_logging may run more than once (tests, reloads)
    if logger.handlers:
        return logger

    LOG_DIR.mkdir(parents=True, exist_ok=True)

    log_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] [%(name)s] %(message)s'
    )

    file_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8"
    )
    file_handler.setFormatter(log_formatter)
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    console_handler.setLevel(logging.INFO)

    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    # Prevent duplicate logs
    logger.propagate = False

    logger.info(safe_log("=" * 80))
    logger.info(safe_log("[START] Logging system initialized"))
    logger.info(safe_log(f"[CONFIG] Log Level: {LOG_LEVEL}"))
    logger.info(safe_log(f"[CONFIG] Log File: {LOG_FILE}"))
    logger.info(safe_log("=" * 80))

    return logger
