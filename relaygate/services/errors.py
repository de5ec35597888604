"""Shared service-layer error types."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""

    UNKNOWN_TARGET = "unknown_target"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    MISSING_CREDENTIAL = "missing_credential"
    UPSTREAM_FAILURE = "upstream_failure"


class ServiceError(Exception):
    """Domain error raised by shared services."""

    def __init__(self, *, code: ErrorKind, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
