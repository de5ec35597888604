"""Static registry of door relays addressable by a capability token."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping

from relaygate.config.schema import TargetEntry
from relaygate.services.errors import ErrorKind, ServiceError


@dataclass(frozen=True)
class Target:
    key: str
    device_id: str
    display_name: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "device_id": self.device_id, "name": self.display_name}


class TargetRegistry:
    """Immutable key -> Target mapping, built once at startup."""

    def __init__(self, targets: list[Target]):
        by_key: dict[str, Target] = {}
        for target in targets:
            if not target.key:
                raise ValueError("target key must not be empty")
            if target.key in by_key:
                raise ValueError(f"duplicate target key: {target.key}")
            by_key[target.key] = target
        self._targets = by_key

    @classmethod
    def from_config(cls, entries: Mapping[str, TargetEntry]) -> "TargetRegistry":
        return cls(
            [
                Target(key=key, device_id=entry.device_id, display_name=entry.name or key)
                for key, entry in entries.items()
            ]
        )

    def get(self, key: str) -> Target | None:
        return self._targets.get(key)

    def resolve(self, key: str) -> Target:
        """Return the target for key or raise ServiceError(UNKNOWN_TARGET)."""
        target = self._targets.get(key)
        if target is None:
            raise ServiceError(code=ErrorKind.UNKNOWN_TARGET, message=f"unknown target: {key}")
        return target

    def keys(self) -> list[str]:
        return list(self._targets)

    def __contains__(self, key: object) -> bool:
        return key in self._targets

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)
