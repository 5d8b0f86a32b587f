"""Error handling utilities for the Telegram AI relay."""

import logging
import os
from enum import Enum
from typing import Any, Optional, Union

from pythonjsonlogger.json import JsonFormatter


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    FETCH = "FETCH"
    SEND = "SEND"
    COMPLETION = "AI"
    CONFIG = "CONFIG"
    GENERAL = "GEN"


class RelayError(Exception):
    """Base class for errors raised by the relay."""


class TelegramAPIError(RelayError):
    """Telegram answered a request with ``ok: false``."""

    def __init__(self, description: str, error_code: int | None = None):
        self.description = description
        self.error_code = error_code
        message = f"Telegram API error: {description}"
        if error_code is not None:
            message = f"Telegram API error {error_code}: {description}"
        super().__init__(message)


class DecodeError(RelayError):
    """A response body was not JSON or did not have the expected shape."""


class CompletionError(RelayError):
    """The AI backend returned an error object instead of choices."""


class ConfigurationError(RelayError):
    """Required configuration is missing or invalid."""


def setup_logger(name: str = "telegram_ai_relay") -> logging.Logger:
    """Set up and configure the logger with JSON file logging.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # Errors also go to a JSON file so failed relays can be correlated by code
    log_file_path = os.environ.get("RELAY_ERROR_LOG", "relay_errors.log")

    try:
        file_handler = logging.FileHandler(log_file_path, mode="a")
        file_handler.setLevel(logging.ERROR)
        json_formatter = JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        file_handler.setFormatter(json_formatter)
        logger.addHandler(file_handler)
    except (OSError, PermissionError):
        # If we can't write to the log file, just use console
        pass

    return logger


# Global logger instance
logger = setup_logger()


def error_code_for(
    function_name: str,
    category: Optional[Union[ErrorCategory, str]] = None,
) -> str:
    """Build the error code logged for failures in ``function_name``."""
    if category is None:
        prefix_str = ErrorCategory.GENERAL.value
    elif isinstance(category, ErrorCategory):
        prefix_str = category.value
    else:
        prefix_str = str(category)

    # Stable across processes, unlike hash()
    checksum = sum(ord(c) * (i + 1) for i, c in enumerate(function_name))
    return f"{prefix_str}-ERR-{checksum % 1000:03d}"


def log_relay_error(
    function_name: str,
    error: Exception,
    category: Optional[Union[ErrorCategory, str]] = None,
    **context: Any,
) -> str:
    """Log a failed relay step with full context.

    Failures are never reported to the chat user; the returned code only
    ties the console line to the JSON error log.

    Args:
        function_name: Name of the step where the error occurred
        error: The exception that was raised
        category: Error category for the error code
        **context: Additional context to log (e.g., chat_id=123)

    Returns:
        The error code that was logged
    """
    error_code = error_code_for(function_name, category)

    context_str = ", ".join(f"{k}={v}" for k, v in context.items())

    log_message = f"Error in {function_name}"
    if context_str:
        log_message += f" ({context_str})"
    log_message += f": {error} - Code: {error_code}"

    logger.error(log_message, exc_info=error)

    return error_code
