import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from insight_dash.config.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
_file_handler: Optional[logging.Handler] = None


def _shared_file_handler() -> logging.Handler:
    """One rotating handler for the whole process, created on first use."""
    global _file_handler
    if _file_handler is None:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        _file_handler = RotatingFileHandler(
            os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _file_handler.setFormatter(_formatter)
    return _file_handler


def get_logger(name: str) -> logging.Logger:
    """
    Configures and returns a logger instance with the specified name.
    Logs go to stdout, and to a rotating file under LOG_DIR when LOG_TO_FILE is on.
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers if logger is already configured
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.propagate = False

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_formatter)
    logger.addHandler(console_handler)

    # --- File Handler ---
    if settings.LOG_TO_FILE:
        logger.addHandler(_shared_file_handler())

    return logger
