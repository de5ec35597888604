"""Shared helpers for consistent HTTP error detail formatting."""

from __future__ import annotations

from relaygate.services.errors import ErrorKind
from relaygate.utils.exceptions import sanitize_error_message

# 200 is success; everything below is the single mapping used by every route.
ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_SIGNATURE: 401,
    ErrorKind.EXPIRED: 401,
    ErrorKind.ALREADY_USED: 401,
    ErrorKind.UNKNOWN_TARGET: 400,
    ErrorKind.MISSING_CREDENTIAL: 400,
    ErrorKind.UPSTREAM_FAILURE: 502,
}


def status_for_error(kind: ErrorKind | None) -> int:
    """HTTP status for a failure kind; unknown or missing kinds are caller errors (400)."""
    if kind is None:
        return 400
    return ERROR_STATUS.get(kind, 400)


def unknown_error_detail(exc: Exception | None) -> str:
    """Format generic unknown-error detail consistently across endpoints."""
    return sanitize_error_message(str(exc)) if exc else "Unknown error"
