"""
Validation and error handling for the threadscope package.

This module provides configuration value validation and the error types and
helpers used for consistent error reporting across the agent.
"""

from .exceptions import (
    ErrorSeverity,
    ProviderError,
    ValidationError,
    handle_config_error,
    handle_error,
    handle_provider_error,
)
from .validators import (
    validate_bool,
    validate_confidence,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
)

__all__ = [
    "ErrorSeverity",
    "ProviderError",
    "ValidationError",
    "handle_config_error",
    "handle_error",
    "handle_provider_error",
    "validate_bool",
    "validate_confidence",
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
]
