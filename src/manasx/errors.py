"""Error taxonomy and logging setup for ManasX governance."""

import logging
import os
from enum import Enum
from typing import Any, Optional, Union

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "manasx"


class ManasXError(Exception):
    """Base exception for governance errors."""

    pass


class ConfigurationError(ManasXError):
    """Raised when a rule configuration or pattern profile is invalid."""

    pass


class StartupError(ManasXError):
    """Raised when the monitor cannot enter the running state."""

    pass


class UnreadableFileError(ManasXError):
    """Raised when a single file asked for by name cannot be read as UTF-8 text."""

    pass


class ClassifierError(ManasXError):
    """Base exception for the external code classifier."""

    pass


class ClassifierUnavailable(ClassifierError):
    """The classifier could not be reached or is not configured."""

    pass


class InvalidClassifierResponse(ClassifierError):
    """The classifier answered with something that could not be parsed."""

    pass


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    LEARN = "LEARN"
    DRIFT = "DRIFT"
    RULES = "RULES"
    MONITOR = "MON"
    CLASSIFIER = "AI"
    GENERAL = "GEN"


def setup_logger(name: str = LOGGER_NAME, log_file: Optional[str] = None) -> logging.Logger:
    """Set up the package logger with console output and optional JSON file logging.

    Calling again with a new ``log_file`` attaches a JSON file handler for that
    path; handlers that already exist are left alone.

    Args:
        name: Logger name
        log_file: Path of the structured JSON log, or None for console only

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(getattr(h, "_manasx_console", False) for h in logger.handlers):
        logger.setLevel(logging.DEBUG)
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s - %(message)s")
        )
        console_handler._manasx_console = True
        logger.addHandler(console_handler)

    if log_file:
        log_file = os.path.abspath(log_file)
        existing = [
            h for h in logger.handlers if getattr(h, "baseFilename", None) == log_file
        ]
        if not existing:
            try:
                os.makedirs(os.path.dirname(log_file), exist_ok=True)
                file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
                file_handler.setLevel(logging.INFO)
                json_formatter = jsonlogger.JsonFormatter(
                    "%(asctime)s %(name)s %(levelname)s %(message)s",
                    datefmt="%Y-%m-%dT%H:%M:%S%z",
                )
                file_handler.setFormatter(json_formatter)
                logger.addHandler(file_handler)
            except (OSError, PermissionError):
                # If we can't write to the log file, just use console
                pass

    return logger


def detach_file_handler(log_file: str, name: str = LOGGER_NAME) -> None:
    """Close and remove the JSON file handler attached for ``log_file``."""
    logger = logging.getLogger(name)
    log_file = os.path.abspath(log_file)
    for handler in list(logger.handlers):
        if getattr(handler, "baseFilename", None) == log_file:
            logger.removeHandler(handler)
            handler.close()


# Global logger instance
logger = setup_logger()


def log_and_format_error(
    function_name: str,
    error: Exception,
    category: Optional[Union[ErrorCategory, str]] = None,
    user_message: Optional[str] = None,
    **context: Any,
) -> str:
    """Centralized error handling function.

    Logs the error with full context and returns a user-friendly message.

    Args:
        function_name: Name of the function where error occurred
        error: The exception that was raised
        category: Error category for the error code
        user_message: Optional custom user-facing message
        **context: Additional context to log (e.g., file="src/a.js")

    Returns:
        User-friendly error message with error code
    """
    if category is None:
        prefix_str = ErrorCategory.GENERAL.value
    elif isinstance(category, ErrorCategory):
        prefix_str = category.value
    else:
        prefix_str = str(category)

    error_code = f"{prefix_str}-ERR-{sum(function_name.encode()) % 1000:03d}"

    context_str = ", ".join(f"{k}={v}" for k, v in context.items())

    log_message = f"Error in {function_name}"
    if context_str:
        log_message += f" ({context_str})"
    log_message += f" - Code: {error_code}"

    logger.error(log_message, exc_info=error)

    if user_message:
        return f"{user_message}: {error} (code: {error_code})"

    return f"An error occurred (code: {error_code}). Check logs for details."
