"""
Exception types and consistent error handling for threadscope.

The monitoring loops must never die because of a single bad tick, so most
call sites log through ``handle_error`` with ``reraise=False``. Configuration
problems, on the other hand, are raised as ``ValidationError`` so the host
application sees them before monitoring starts.
"""

import logging
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ValidationError(Exception):
    """
    Exception raised when a configuration value fails validation.

    Carries the offending field name and value so the caller can report
    exactly which setting is wrong.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class ProviderError(Exception):
    """
    Raised by an introspection provider when thread state cannot be read.

    The monitor treats this as a skipped tick, never as a fatal error.
    """

    def __init__(self, message: str, provider_name: Optional[str] = None):
        super().__init__(message)
        self.provider_name = provider_name


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
    """
    effective_logger = logger or globals()['logger']

    error_msg = f"Error in {context}: {error}"

    if isinstance(severity, str):
        severity_str = severity.lower()
    else:
        severity_str = severity.value

    if severity_str == "debug":
        effective_logger.debug(error_msg, exc_info=True)
    elif severity_str == "info":
        effective_logger.info(error_msg)
    elif severity_str == "warning":
        effective_logger.warning(error_msg)
    elif severity_str == "error":
        effective_logger.error(error_msg, exc_info=True)
    elif severity_str == "critical":
        effective_logger.critical(error_msg, exc_info=True)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_provider_error(error: Exception, provider_name: str, **kwargs) -> None:
    """Handle failures reported by an introspection provider."""
    handle_error(error, f"introspection provider '{provider_name}'", **kwargs)
