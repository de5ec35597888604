"""Helpers for capability-token HTTP endpoints."""

from __future__ import annotations

import platform
from typing import Any

from fastapi import HTTPException

from relaygate.actuation.client import ActuationResult
from relaygate.api.http.error_helpers import status_for_error
from relaygate.config.schema import Config
from relaygate.services.capability import CapabilityError, CapabilityService
from relaygate.targets.registry import TargetRegistry

HttpPayload = tuple[int, dict[str, Any]]


def _actuation_payload(outcome: ActuationResult | CapabilityError) -> HttpPayload:
    if isinstance(outcome, CapabilityError):
        return status_for_error(outcome.kind), outcome.to_dict()
    if outcome.succeeded:
        return 200, outcome.to_dict()
    return status_for_error(outcome.error_kind), outcome.to_dict()


def issue_token_response(*, service: CapabilityService, target_key: str, base_url: str) -> HttpPayload:
    """Payload for GET /gen/{target}: token fields plus the redeem URL."""
    outcome = service.request_token(target_key)
    if isinstance(outcome, CapabilityError):
        return status_for_error(outcome.kind), outcome.to_dict()
    return 200, {
        "ok": True,
        **outcome.to_dict(),
        "url": f"{base_url.rstrip('/')}{outcome.redeem_path()}",
    }


def redirect_location(*, service: CapabilityService, target_key: str) -> str:
    """Redeem path for GET /t/{target}. Raises HTTPException 404 for unknown targets."""
    outcome = service.request_token(target_key)
    if isinstance(outcome, CapabilityError):
        raise HTTPException(status_code=404, detail=outcome.kind.value)
    return outcome.redeem_path()


async def redeem_response(
    *,
    service: CapabilityService,
    target_key: str,
    issued_at: str,
    signature: str,
) -> HttpPayload:
    outcome = await service.redeem(target_key, issued_at, signature)
    return _actuation_payload(outcome)


async def direct_actuation_response(*, service: CapabilityService, target_key: str) -> HttpPayload:
    outcome = await service.actuate_direct(target_key)
    return _actuation_payload(outcome)


async def diagnose_response(*, service: CapabilityService, target_key: str) -> HttpPayload:
    outcome = await service.diagnose(target_key)
    if isinstance(outcome, CapabilityError):
        return status_for_error(outcome.kind), outcome.to_dict()
    return 200, outcome


def index_payload(*, registry: TargetRegistry, timezone: str) -> dict[str, Any]:
    """Structured listing of targets and their links (replaces the HTML index)."""
    return {
        "service": "relaygate",
        "tz": timezone,
        "count": len(registry),
        "targets": [
            {
                **target.to_dict(),
                "links": {
                    "gen": f"/gen/{target.key}",
                    "redirect": f"/t/{target.key}",
                },
            }
            for target in registry
        ],
    }


def health_payload(*, config: Config, registry: TargetRegistry) -> dict[str, Any]:
    return {
        "ok": True,
        "hasApiKey": config.has_api_key,
        "baseUrl": config.upstream.base_url,
        "tz": config.gateway.timezone,
        "python": platform.python_version(),
        "targets": len(registry),
    }
