"""HTTP client for the Shelly Cloud relay control plane."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from relaygate.config.schema import UpstreamConfig
from relaygate.services.errors import ErrorKind
from relaygate.utils.exceptions import sanitize_error_message


class Protocol(str, Enum):
    PRIMARY = "primary"  # Gen1 /device/relay/control
    FALLBACK = "fallback"  # Gen2 Switch.Set RPC


_PROTOCOL_STEP = {Protocol.PRIMARY: "v1", Protocol.FALLBACK: "v2"}


class UpstreamErrorClass(str, Enum):
    WRONG_DEVICE_TYPE = "wrong_device_type"
    UNAUTHORIZED = "unauthorized"
    OTHER = "other"


# Phrases the cloud uses when a Gen1 call hits a Gen2 device.
_WRONG_TYPE_PHRASES = ("wrong_type", "wrong device type", "device type not supported")
_UNAUTHORIZED_PHRASES = ("unauthorized", "not authorized", "invalid_token")


@dataclass
class ActuationResult:
    succeeded: bool
    protocol_used: Protocol
    upstream_status: int | None = None
    upstream_payload: Any | None = None
    error_kind: ErrorKind | None = None
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "ok": self.succeeded,
            "protocol": self.protocol_used.value,
            "step": _PROTOCOL_STEP[self.protocol_used],
        }
        if self.upstream_status is not None:
            out["status"] = self.upstream_status
        if self.upstream_payload is not None:
            out["data"] = self.upstream_payload
        if self.error_kind is not None:
            out["error"] = self.error_kind.value
        if self.detail:
            out["details"] = self.detail
        return out


def classify_upstream_error(status_code: int | None, payload: Any) -> UpstreamErrorClass:
    """Map a failed Gen1 response onto the signals that warrant the Gen2 fallback."""
    if isinstance(payload, (dict, list)):
        text = json.dumps(payload, ensure_ascii=False).lower()
    else:
        text = str(payload or "").lower()
    if any(phrase in text for phrase in _WRONG_TYPE_PHRASES):
        return UpstreamErrorClass.WRONG_DEVICE_TYPE
    if status_code in (401, 403):
        return UpstreamErrorClass.UNAUTHORIZED
    if any(phrase in text for phrase in _UNAUTHORIZED_PHRASES):
        return UpstreamErrorClass.UNAUTHORIZED
    return UpstreamErrorClass.OTHER


def _decode_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        text = (resp.text or "").strip()
        return text[:500] or None


class ActuationClient:
    """Turns a relay on, trying the Gen1 call first and Gen2 RPC on a device-type or auth signal."""

    def __init__(self, config: UpstreamConfig, *, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_s)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def actuate(self, device_id: str) -> ActuationResult:
        api_key = self.config.api_key.strip()
        if not api_key:
            return ActuationResult(
                succeeded=False,
                protocol_used=Protocol.PRIMARY,
                error_kind=ErrorKind.MISSING_CREDENTIAL,
                detail="upstream api key is not configured",
            )

        primary = await self._call_primary(device_id, api_key)
        if primary.succeeded or primary.upstream_status is None:
            return primary

        error_class = classify_upstream_error(primary.upstream_status, primary.upstream_payload)
        if error_class is UpstreamErrorClass.OTHER:
            return primary

        logger.info(
            "Primary relay call for {} rejected ({}), trying RPC fallback",
            device_id,
            error_class.value,
        )
        return await self._call_fallback(device_id, api_key)

    async def _call_primary(self, device_id: str, api_key: str) -> ActuationResult:
        form = {
            "id": device_id,
            "auth_key": api_key,
            "channel": str(self.config.relay_channel),
            "turn": "on",
        }
        try:
            resp = await self._post(self.config.primary_path, data=form)
        except httpx.HTTPError as exc:
            return self._network_failure(Protocol.PRIMARY, device_id, exc)

        body = _decode_body(resp)
        if isinstance(body, dict) and body.get("isok") is True:
            return ActuationResult(
                succeeded=True,
                protocol_used=Protocol.PRIMARY,
                upstream_status=resp.status_code,
                upstream_payload=body,
            )
        return ActuationResult(
            succeeded=False,
            protocol_used=Protocol.PRIMARY,
            upstream_status=resp.status_code,
            upstream_payload=body,
            error_kind=ErrorKind.UPSTREAM_FAILURE,
            detail="cloud_error",
        )

    async def _call_fallback(self, device_id: str, api_key: str) -> ActuationResult:
        body = {
            "id": device_id,
            "auth_key": api_key,
            "method": "Switch.Set",
            "params": {"id": self.config.relay_channel, "on": True},
        }
        try:
            resp = await self._post(self.config.fallback_path, json=body)
        except httpx.HTTPError as exc:
            return self._network_failure(Protocol.FALLBACK, device_id, exc)

        payload = _decode_body(resp)
        if 200 <= resp.status_code < 300:
            return ActuationResult(
                succeeded=True,
                protocol_used=Protocol.FALLBACK,
                upstream_status=resp.status_code,
                upstream_payload=payload,
            )
        return ActuationResult(
            succeeded=False,
            protocol_used=Protocol.FALLBACK,
            upstream_status=resp.status_code,
            upstream_payload=payload,
            error_kind=ErrorKind.UPSTREAM_FAILURE,
            detail=f"fallback http error {resp.status_code}",
        )

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        url = f"{self.base_url}{path if path.startswith('/') else '/' + path}"
        return await client.post(url, timeout=self.config.timeout_s, **kwargs)

    @staticmethod
    def _network_failure(protocol: Protocol, device_id: str, exc: httpx.HTTPError) -> ActuationResult:
        kind = "timeout" if isinstance(exc, httpx.TimeoutException) else "network error"
        detail = sanitize_error_message(f"cloud {kind}: {exc}")
        logger.warning("{} relay call for {} failed: {}", protocol.value, device_id, detail)
        return ActuationResult(
            succeeded=False,
            protocol_used=protocol,
            error_kind=ErrorKind.UPSTREAM_FAILURE,
            detail=detail,
        )
