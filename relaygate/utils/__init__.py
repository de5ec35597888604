"""Utility functions for relaygate."""

from relaygate.utils.exceptions import (
    RelayGateError,
    ConfigurationError,
    OperatorAccessError,
    ErrorCategory,
    classify_exception,
    http_status_for,
    sanitize_error_message,
)

__all__ = [
    "RelayGateError",
    "ConfigurationError",
    "OperatorAccessError",
    "ErrorCategory",
    "classify_exception",
    "http_status_for",
    "sanitize_error_message",
]
