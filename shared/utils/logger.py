"""
Logging configuration shared by the worker process and library code.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str) -> logging.Logger:
    """
    Setup a logger with consistent formatting.

    Console output always; a file handler is added when LOG_FILE is set.

    Args:
        name: Logger name (usually __name__ of the module)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(settings.LOG_LEVEL)
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_path = Path(settings.LOG_FILE)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        logger.propagate = False

    return logger


class JobLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the request (and correlation) id of a job."""

    def process(self, msg, kwargs):
        prefix = f"[{self.extra['request_id']}]"
        if self.extra.get("correlation_id"):
            prefix = f"[{self.extra['request_id']} corr={self.extra['correlation_id']}]"
        return f"{prefix} {msg}", kwargs


def job_logger(logger: logging.Logger, request_id, correlation_id: Optional[str] = None) -> JobLogAdapter:
    return JobLogAdapter(logger, {"request_id": str(request_id), "correlation_id": correlation_id})


def log_error(logger, error: Exception, context: str = "") -> None:
    """
    Log an error with context.

    The full traceback is only emitted in DEBUG mode; otherwise the
    exception type, message and direct cause are logged on one line.

    Args:
        logger: Logger or JobLogAdapter instance
        error: Exception that occurred
        context: Where the error occurred (operation name)
    """
    message = f"{type(error).__name__}: {error}"
    if error.__cause__ is not None:
        message += f" (caused by {type(error.__cause__).__name__}: {error.__cause__})"
    logger.error(f"{context}: {message}" if context else message)

    if settings.DEBUG:
        logger.exception("Full traceback:")
