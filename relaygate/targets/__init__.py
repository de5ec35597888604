"""Target registry."""

from relaygate.targets.registry import Target, TargetRegistry

__all__ = ["Target", "TargetRegistry"]
