"""
Structured logging configuration for the application.
"""

import logging
import sys
from typing import Any, Optional
from pathlib import Path

from .config import settings


def setup_logger(name: str) -> logging.Logger:
    """
    Setup a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__ of the module)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        logger.setLevel(settings.LOG_LEVEL)

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(settings.LOG_LEVEL)

        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            log_path = Path(settings.LOG_FILE)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(settings.LOG_LEVEL)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def log_function_call(logger: logging.Logger, func_name: str, **kwargs: Any) -> None:
    """
    Log a function call with its arguments.

    Args:
        logger: Logger instance
        func_name: Function name
        **kwargs: Function arguments to log
    """
    args_str = ", ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.debug(f"Calling {func_name}({args_str})")


def log_error(
    logger: logging.Logger,
    error: BaseException,
    context: str = "",
    traceback: Optional[bool] = None
) -> None:
    """
    Log an error with context.

    Works outside an ``except`` block: the traceback is taken from the
    exception itself.

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Additional context about where the error occurred
        traceback: Attach the traceback (defaults to settings.DEBUG)
    """
    message = f"{type(error).__name__}: {error}"
    if context:
        message = f"{context}: {message}"

    if traceback is None:
        traceback = settings.DEBUG

    exc_info = (type(error), error, error.__traceback__) if traceback else None
    logger.error(message, exc_info=exc_info)
