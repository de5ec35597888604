"""Capability issuance and redemption: token codec + replay guard + relay actuation.

Redemption checks run in a fixed order: target, signature, freshness, replay.
An expired or forged token therefore never reaches the replay guard, and every
failure is returned as a structured value rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from relaygate.actuation.client import ActuationClient, ActuationResult, Protocol
from relaygate.gateway.replay_guard import RejectReason, ReplayGuard
from relaygate.gateway.token_codec import Token, TokenCodec, now_ms as _default_now_ms
from relaygate.services.errors import ErrorKind, ServiceError
from relaygate.targets.registry import Target, TargetRegistry
from relaygate.utils.exceptions import sanitize_error_message

DEFAULT_VALIDITY_WINDOW_MS = 5 * 60 * 1000

_REJECT_TO_KIND = {
    RejectReason.ALREADY_USED: ErrorKind.ALREADY_USED,
    RejectReason.EXPIRED: ErrorKind.EXPIRED,
}


@dataclass(frozen=True)
class CapabilityError:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.kind.value, "message": self.message}


def _short(signature: str) -> str:
    return f"{signature[:8]}…" if len(signature) > 8 else signature


class CapabilityService:
    """Issues single-use tokens and redeems them into one relay actuation."""

    def __init__(
        self,
        *,
        registry: TargetRegistry,
        codec: TokenCodec,
        replay_guard: ReplayGuard,
        actuator: ActuationClient,
        validity_window_ms: int = DEFAULT_VALIDITY_WINDOW_MS,
        now_ms: Callable[[], int] = _default_now_ms,
    ):
        self.registry = registry
        self.codec = codec
        self.replay_guard = replay_guard
        self.actuator = actuator
        self.validity_window_ms = validity_window_ms
        self._now_ms = now_ms

    def request_token(self, target_key: str) -> Token | CapabilityError:
        try:
            target = self.registry.resolve(target_key)
        except ServiceError as exc:
            return CapabilityError(kind=exc.code, message=exc.message)
        token = self.codec.issue(target.key)
        logger.info("Issued token for {} at {}", target.key, token.issued_at_ms)
        return token

    async def redeem(
        self,
        target_key: str,
        issued_at: int | str,
        signature: str,
    ) -> ActuationResult | CapabilityError:
        try:
            target = self.registry.resolve(target_key)
        except ServiceError as exc:
            return self._reject(exc.code, exc.message, target_key)

        if not self.codec.verify_signature(target.key, issued_at, signature):
            return self._reject(ErrorKind.INVALID_SIGNATURE, "signature does not match target and timestamp", target.key)

        now = self._now_ms()
        try:
            age_ms = now - int(str(issued_at))
        except ValueError:
            return self._reject(ErrorKind.EXPIRED, "token timestamp is not a valid integer", target.key)
        if age_ms < 0 or age_ms > self.validity_window_ms:
            return self._reject(ErrorKind.EXPIRED, "token is outside its validity window", target.key)

        consumed = self.replay_guard.try_consume(signature, now, self.validity_window_ms)
        if not consumed.accepted:
            kind = _REJECT_TO_KIND.get(consumed.reason, ErrorKind.ALREADY_USED)
            message = "token has already been used" if kind is ErrorKind.ALREADY_USED else "token is outside its validity window"
            return self._reject(kind, message, target.key, signature)

        logger.info("Token {} accepted for {}, actuating {}", _short(signature), target.key, target.device_id)
        return await self._actuate(target)

    async def actuate_direct(self, target_key: str) -> ActuationResult | CapabilityError:
        """Operator-only actuation without a capability token."""
        try:
            target = self.registry.resolve(target_key)
        except ServiceError as exc:
            return CapabilityError(kind=exc.code, message=exc.message)
        logger.warning("Operator actuation of {} ({}) without token", target.key, target.device_id)
        return await self._actuate(target)

    async def diagnose(self, target_key: str) -> dict[str, Any] | CapabilityError:
        """Operator-only actuation that also reports the device id behind the target."""
        try:
            target = self.registry.resolve(target_key)
        except ServiceError as exc:
            return CapabilityError(kind=exc.code, message=exc.message)
        result = await self._actuate(target)
        return {"target": target.key, "device_id": target.device_id, "result": result.to_dict()}

    async def _actuate(self, target: Target) -> ActuationResult:
        try:
            result = await self.actuator.actuate(target.device_id)
        except Exception as exc:
            detail = sanitize_error_message(str(exc))
            logger.exception("Actuation of {} raised: {}", target.key, detail)
            return ActuationResult(
                succeeded=False,
                protocol_used=Protocol.PRIMARY,
                error_kind=ErrorKind.UPSTREAM_FAILURE,
                detail=detail,
            )
        if result.succeeded:
            logger.info("Relay {} on via {}", target.key, result.protocol_used.value)
        else:
            logger.warning(
                "Relay {} failed via {}: {} (status={})",
                target.key,
                result.protocol_used.value,
                result.error_kind.value if result.error_kind else "unknown",
                result.upstream_status,
            )
        return result

    @staticmethod
    def _reject(kind: ErrorKind, message: str, target_key: str, signature: str = "") -> CapabilityError:
        if signature:
            logger.warning("Rejected token {} for {}: {}", _short(signature), target_key, kind.value)
        else:
            logger.warning("Rejected request for {}: {}", target_key, kind.value)
        return CapabilityError(kind=kind, message=message)
