"""HMAC-SHA256 capability tokens bound to a target and an issuance timestamp."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Any, Callable


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Token:
    target: str
    issued_at_ms: int
    signature: str

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target, "ts": self.issued_at_ms, "sig": self.signature}

    def redeem_path(self) -> str:
        return f"/open/{self.target}/{self.issued_at_ms}/{self.signature}"


def build_token_payload(target: str, issued_at: int | str) -> str:
    """Canonical signed message: '<target>:<issued_at>'."""
    return f"{target}:{issued_at}"


def _constant_time_compare(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class TokenCodec:
    """Signs and verifies tokens with a shared secret."""

    def __init__(self, secret: str, *, clock: Callable[[], int] = now_ms):
        if not secret:
            raise ValueError("token secret must not be empty")
        self._key = secret.encode("utf-8")
        self._clock = clock

    def sign(self, target: str, issued_at: int | str) -> str:
        digest = hmac.new(
            self._key,
            build_token_payload(target, issued_at).encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def issue(self, target: str) -> Token:
        issued_at = int(self._clock())
        return Token(target=target, issued_at_ms=issued_at, signature=self.sign(target, issued_at))

    def verify_signature(self, target: str, issued_at: int | str, signature: str) -> bool:
        """True when signature was derived from exactly (target, issued_at) with this secret."""
        if not signature:
            return False
        return _constant_time_compare(self.sign(target, issued_at), signature)
