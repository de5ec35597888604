"""Capability token domain services."""

from relaygate.services.capability.capability_service import (
    CapabilityError,
    CapabilityService,
    DEFAULT_VALIDITY_WINDOW_MS,
)

__all__ = ["CapabilityError", "CapabilityService", "DEFAULT_VALIDITY_WINDOW_MS"]
