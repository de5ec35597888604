"""Cloud relay actuation."""

from relaygate.actuation.client import (
    ActuationClient,
    ActuationResult,
    Protocol,
    UpstreamErrorClass,
    classify_upstream_error,
)

__all__ = [
    "ActuationClient",
    "ActuationResult",
    "Protocol",
    "UpstreamErrorClass",
    "classify_upstream_error",
]
