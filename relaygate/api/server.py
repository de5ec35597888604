"""FastAPI server for relaygate.

In the overall architecture: a single port serves token issuance, redirect
links, redemption and the operator-only diagnostics. Runtime collaborators
(registry, codec, replay guard, actuation client) are built once per app and
reached through app.state.runtime.
"""

from __future__ import annotations

import asyncio
import hmac
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from relaygate import __version__
from relaygate.actuation.client import ActuationClient
from relaygate.api.http.capability_methods import (
    diagnose_response,
    direct_actuation_response,
    health_payload,
    index_payload,
    issue_token_response,
    redeem_response,
    redirect_location,
)
from relaygate.config.access import get_config as get_cached_config
from relaygate.config.schema import Config
from relaygate.gateway.replay_guard import ReplayGuard
from relaygate.gateway.token_codec import TokenCodec
from relaygate.services.capability import CapabilityService
from relaygate.targets.registry import TargetRegistry
from relaygate.utils.exceptions import (
    ConfigurationError,
    OperatorAccessError,
    RelayGateError,
    classify_exception,
    http_status_for,
    sanitize_error_message,
)


@dataclass
class GatewayRuntime:
    config: Config
    registry: TargetRegistry
    replay_guard: ReplayGuard
    actuator: ActuationClient
    service: CapabilityService
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    sweeper_task: asyncio.Task | None = None


def build_runtime(config: Config, *, http_client: httpx.AsyncClient | None = None) -> GatewayRuntime:
    """Wire registry, codec, replay guard and actuation client from config."""
    if not config.tokens.secret.strip():
        raise ConfigurationError("token secret must not be empty", setting="tokens.secret")
    registry = TargetRegistry.from_config(config.targets)
    replay_guard = ReplayGuard()
    actuator = ActuationClient(config.upstream, http_client=http_client)
    service = CapabilityService(
        registry=registry,
        codec=TokenCodec(config.tokens.secret),
        replay_guard=replay_guard,
        actuator=actuator,
        validity_window_ms=config.tokens.validity_window_ms,
    )
    return GatewayRuntime(
        config=config,
        registry=registry,
        replay_guard=replay_guard,
        actuator=actuator,
        service=service,
    )


def _log_startup_warnings(config: Config) -> None:
    if config.uses_default_secret:
        logger.warning("Token secret is the built-in default; set TOKEN_SECRET before exposing this gateway")
    if not config.has_api_key:
        logger.warning("Upstream api key is not set; every actuation will fail with missing_credential")
    if config.gateway.operator_token:
        logger.info("Operator endpoints enabled (/open?target=, /diag/{target})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the replay-guard sweeper; stop it and close the upstream client on shutdown."""
    runtime: GatewayRuntime = app.state.runtime
    runtime.stop_event = asyncio.Event()
    runtime.sweeper_task = asyncio.create_task(
        runtime.replay_guard.run_sweeper(
            interval_s=runtime.config.tokens.sweep_interval_s,
            stop_event=runtime.stop_event,
        )
    )
    logger.info(
        "relaygate {} serving {} target(s), TZ={}",
        __version__,
        len(runtime.registry),
        runtime.config.gateway.timezone,
    )
    _log_startup_warnings(runtime.config)
    try:
        yield
    finally:
        runtime.stop_event.set()
        if runtime.sweeper_task is not None:
            await runtime.sweeper_task
            runtime.sweeper_task = None
        await runtime.actuator.close()
        logger.info("relaygate stopped")


def get_runtime(request: Request) -> GatewayRuntime:
    return request.app.state.runtime


def _extract_operator_credential(request: Request) -> str | None:
    """Extract credential from Authorization: Bearer or X-Operator-Token."""
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth[7:].strip()
    return request.headers.get("X-Operator-Token", "").strip() or None


async def verify_operator_token(request: Request, runtime: GatewayRuntime = Depends(get_runtime)) -> None:
    """Dependency: operator routes exist only when gateway.operator_token is set, and require it."""
    token = (runtime.config.gateway.operator_token or "").strip()
    if not token:
        raise HTTPException(status_code=404, detail="Not found")
    provided = _extract_operator_credential(request)
    if not provided or not hmac.compare_digest(token.encode("utf-8"), provided.encode("utf-8")):
        raise OperatorAccessError()


def _public_base_url(request: Request, runtime: GatewayRuntime) -> str:
    configured = runtime.config.gateway.public_base_url.strip()
    return configured or str(request.base_url)


def create_app(config: Config | None = None, *, http_client: httpx.AsyncClient | None = None) -> FastAPI:
    """Build the gateway app. Config defaults to the cached ~/.relaygate/config.json."""
    runtime = build_runtime(config or get_cached_config(), http_client=http_client)
    app = FastAPI(
        title="relaygate",
        description="Single-use signed links for cloud door relays",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    @app.exception_handler(RelayGateError)
    async def relaygate_exception_handler(request: Request, exc: RelayGateError):
        return JSONResponse(status_code=http_status_for(exc), content=exc.to_dict())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        code, _, _ = classify_exception(exc)
        sanitized = sanitize_error_message(str(exc))
        logger.exception("Unhandled exception [{}]: {}", code, sanitized)
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred", "code": code},
        )

    @app.get("/")
    async def root(rt: GatewayRuntime = Depends(get_runtime)):
        """Index of configured targets and their links."""
        return index_payload(registry=rt.registry, timezone=rt.config.gateway.timezone)

    @app.get("/health")
    async def health(rt: GatewayRuntime = Depends(get_runtime)):
        return health_payload(config=rt.config, registry=rt.registry)

    @app.get("/gen/{target}")
    async def gen_token(target: str, request: Request, rt: GatewayRuntime = Depends(get_runtime)):
        """Mint a token and return it with its redeem URL."""
        status, payload = issue_token_response(
            service=rt.service,
            target_key=target,
            base_url=_public_base_url(request, rt),
        )
        return JSONResponse(status_code=status, content=payload)

    @app.get("/t/{target}")
    async def smart_link(target: str, rt: GatewayRuntime = Depends(get_runtime)):
        """Mint a token and redirect straight to its redeem URL."""
        return RedirectResponse(url=redirect_location(service=rt.service, target_key=target), status_code=302)

    @app.get("/open/{target}/{ts}/{sig}")
    async def open_with_token(target: str, ts: str, sig: str, rt: GatewayRuntime = Depends(get_runtime)):
        status, payload = await redeem_response(service=rt.service, target_key=target, issued_at=ts, signature=sig)
        return JSONResponse(status_code=status, content=payload)

    @app.get("/open", dependencies=[Depends(verify_operator_token)])
    async def open_without_token(target: str, rt: GatewayRuntime = Depends(get_runtime)):
        """Operator test actuation; bypasses the token check."""
        status, payload = await direct_actuation_response(service=rt.service, target_key=target)
        return JSONResponse(status_code=status, content=payload)

    @app.get("/diag/{target}", dependencies=[Depends(verify_operator_token)])
    async def diagnose(target: str, rt: GatewayRuntime = Depends(get_runtime)):
        status, payload = await diagnose_response(service=rt.service, target_key=target)
        return JSONResponse(status_code=status, content=payload)

    return app


def run_server(config: Config, host: str | None = None, port: int | None = None) -> None:
    """Run the gateway under uvicorn."""
    import uvicorn

    uvicorn.run(
        create_app(config),
        host=host or config.gateway.host,
        port=port or config.gateway.port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=10,
        log_level="warning",
    )
