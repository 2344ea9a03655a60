"""
Logger utilities for the callback relay.

Every component logs through a named logger created by setup_logger(), which
writes to stdout and to a pair of rotating files under LOG_DIR:
"<name>.log" with everything and "<name>_error.log" with errors only.

Usage:
    from callback_relay.utils.logger import setup_logger
    my_logger = setup_logger("my_component", logging.DEBUG, "my_component.log")
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from callback_relay.config import LOG_DIR, LOG_LEVEL

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logger(name: str = "callback_relay", log_level: int = None, log_file: str = None):
    """
    Sets up a logger with both console and file handlers.

    Args:
        name (str): The name of the logger.
        log_level (int): The logging level (default: LOG_LEVEL from config).
        log_file (str): Optional custom log filename (without path). If not provided, defaults to "{name}.log".

    Returns:
        logging.Logger: The configured logger instance.
    """
    logger = logging.getLogger(name)
    if log_level is None:
        log_level = logging.getLevelName(LOG_LEVEL.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    logger.setLevel(log_level)

    # Check if handlers are already added to avoid duplicate logs
    if not logger.handlers:
        if log_file is None:
            log_file = f"{name}.log"

        os.makedirs(LOG_DIR, exist_ok=True)
        app_log_file = os.path.join(LOG_DIR, log_file)
        error_log_file = os.path.join(LOG_DIR, f"{os.path.splitext(log_file)[0]}_error.log")

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        file_handler = RotatingFileHandler(
            app_log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        error_file_handler = RotatingFileHandler(
            error_log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        error_file_handler.setFormatter(formatter)
        error_file_handler.setLevel(logging.ERROR)
        logger.addHandler(error_file_handler)

    return logger


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of request headers with credentials masked for logging."""
    masked = dict(headers)
    for key in masked:
        if key.lower() in ("authorization", "cookie", "x-api-key"):
            masked[key] = "[masked]"
    return masked
