"""
Exception hierarchy and error handling utilities for relaygate.

Provides:
- Custom exception classes with error codes
- Error categorization (fatal, retryable, configuration)
- Safe error message formatting (no credential leak)
"""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"


class RelayGateError(Exception):
    """Base exception for all relaygate errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigurationError(RelayGateError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, setting: str | None = None):
        details = {"setting": setting} if setting else {}
        super().__init__(message, code="CONFIGURATION_ERROR", category=ErrorCategory.CONFIGURATION, details=details)


class OperatorAccessError(RelayGateError):
    """Operator-only endpoint called without a valid operator credential."""

    def __init__(self, message: str = "Invalid or missing operator token"):
        super().__init__(message, code="OPERATOR_UNAUTHORIZED", category=ErrorCategory.PERMISSION)


_SENSITIVE_PATTERNS = [
    re.compile(r"(auth[_-]?key|api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"&]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, RelayGateError):
        return exc.code, exc.category, exc.category == ErrorCategory.RETRYABLE

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    exc_str = str(exc).lower()
    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if "connection" in exc_str or "network" in exc_str:
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def http_status_for(exc: RelayGateError) -> int:
    """Map a RelayGateError category to an HTTP status code."""
    return {
        ErrorCategory.VALIDATION: 400,
        ErrorCategory.NOT_FOUND: 404,
        ErrorCategory.PERMISSION: 401,
        ErrorCategory.TIMEOUT: 504,
        ErrorCategory.RETRYABLE: 503,
        ErrorCategory.CONFIGURATION: 503,
    }.get(exc.category, 500)
