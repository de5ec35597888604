import httpx
import pytest

from relaygate.actuation.client import ActuationClient, ActuationResult, Protocol
from relaygate.config.schema import TargetEntry, UpstreamConfig
from relaygate.gateway.replay_guard import ReplayGuard
from relaygate.gateway.token_codec import Token, TokenCodec
from relaygate.services.capability import CapabilityError, CapabilityService
from relaygate.services.errors import ErrorKind
from relaygate.targets.registry import TargetRegistry

WINDOW_MS = 5 * 60 * 1000


class _FakeActuator:
    def __init__(self, result: ActuationResult | None = None, exc: Exception | None = None):
        self.calls: list[str] = []
        self.result = result or ActuationResult(
            succeeded=True, protocol_used=Protocol.PRIMARY, upstream_status=200, upstream_payload={"isok": True}
        )
        self.exc = exc

    async def actuate(self, device_id: str) -> ActuationResult:
        self.calls.append(device_id)
        if self.exc is not None:
            raise self.exc
        return self.result


def _registry() -> TargetRegistry:
    return TargetRegistry.from_config(
        {
            "scala-door": TargetEntry(device_id="3494547a1075", name="Scala — Apartment Door"),
            "ottavia-door": TargetEntry(device_id="3494547a887d", name="Ottavia — Apartment Door"),
        }
    )


def _service(clock, actuator=None, guard: ReplayGuard | None = None) -> CapabilityService:
    return CapabilityService(
        registry=_registry(),
        codec=TokenCodec("s3cret", clock=clock),
        replay_guard=guard or ReplayGuard(),
        actuator=actuator or _FakeActuator(),
        validity_window_ms=WINDOW_MS,
        now_ms=clock,
    )


def test_request_token_for_known_target(clock) -> None:
    token = _service(clock).request_token("scala-door")
    assert isinstance(token, Token)
    assert token.target == "scala-door"
    assert token.issued_at_ms == clock.value


def test_request_token_for_unknown_target(clock) -> None:
    outcome = _service(clock).request_token("nowhere")
    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.UNKNOWN_TARGET


@pytest.mark.asyncio
async def test_redeem_fresh_token_actuates_primary(clock) -> None:
    actuator = _FakeActuator()
    service = _service(clock, actuator)
    token = service.request_token("scala-door")
    clock.advance(10_000)

    result = await service.redeem("scala-door", str(token.issued_at_ms), token.signature)

    assert isinstance(result, ActuationResult)
    assert result.succeeded is True
    assert result.protocol_used is Protocol.PRIMARY
    assert actuator.calls == ["3494547a1075"]


@pytest.mark.asyncio
async def test_redeem_with_real_client_primary_success(clock) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"isok": True}))
    actuator = ActuationClient(
        UpstreamConfig(api_key="k", base_url="https://cloud.test"),
        http_client=httpx.AsyncClient(transport=transport),
    )
    service = _service(clock, actuator)
    token = service.request_token("scala-door")
    clock.advance(10_000)
    result = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    assert isinstance(result, ActuationResult)
    assert result.succeeded is True
    assert result.protocol_used is Protocol.PRIMARY


@pytest.mark.asyncio
async def test_second_redeem_is_already_used(clock) -> None:
    actuator = _FakeActuator()
    service = _service(clock, actuator)
    token = service.request_token("scala-door")

    first = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    second = await service.redeem("scala-door", token.issued_at_ms, token.signature)

    assert isinstance(first, ActuationResult) and first.succeeded
    assert isinstance(second, CapabilityError)
    assert second.kind is ErrorKind.ALREADY_USED
    assert len(actuator.calls) == 1


@pytest.mark.asyncio
async def test_failed_actuation_still_consumes_token(clock) -> None:
    failing = ActuationResult(
        succeeded=False, protocol_used=Protocol.PRIMARY, upstream_status=500, error_kind=ErrorKind.UPSTREAM_FAILURE
    )
    service = _service(clock, _FakeActuator(failing))
    token = service.request_token("scala-door")
    first = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    second = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    assert isinstance(first, ActuationResult) and first.error_kind is ErrorKind.UPSTREAM_FAILURE
    assert isinstance(second, CapabilityError) and second.kind is ErrorKind.ALREADY_USED


@pytest.mark.asyncio
async def test_expired_token_never_reaches_guard_or_upstream(clock) -> None:
    actuator = _FakeActuator()
    guard = ReplayGuard()
    service = _service(clock, actuator, guard)
    token = service.request_token("ottavia-door")
    clock.advance(6 * 60 * 1000)

    outcome = await service.redeem("ottavia-door", token.issued_at_ms, token.signature)

    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.EXPIRED
    assert actuator.calls == []
    assert not guard.contains(token.signature)


@pytest.mark.asyncio
async def test_token_exactly_at_window_edge_is_accepted(clock) -> None:
    service = _service(clock)
    token = service.request_token("scala-door")
    clock.advance(WINDOW_MS)
    result = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    assert isinstance(result, ActuationResult)


@pytest.mark.asyncio
async def test_token_from_the_future_is_expired(clock) -> None:
    codec = TokenCodec("s3cret", clock=clock)
    future_ts = clock.value + 60_000
    sig = codec.sign("scala-door", future_ts)
    outcome = await _service(clock).redeem("scala-door", future_ts, sig)
    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.EXPIRED


@pytest.mark.asyncio
async def test_non_numeric_timestamp_with_valid_signature_is_expired(clock) -> None:
    sig = TokenCodec("s3cret").sign("scala-door", "yesterday")
    outcome = await _service(clock).redeem("scala-door", "yesterday", sig)
    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.EXPIRED


@pytest.mark.asyncio
async def test_signature_checked_before_freshness(clock) -> None:
    service = _service(clock)
    token = service.request_token("scala-door")
    clock.advance(6 * 60 * 1000)
    forged = ("B" if token.signature[0] != "B" else "C") + token.signature[1:]
    outcome = await service.redeem("scala-door", token.issued_at_ms, forged)
    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.INVALID_SIGNATURE


@pytest.mark.asyncio
async def test_token_for_one_target_rejected_on_another(clock) -> None:
    actuator = _FakeActuator()
    service = _service(clock, actuator)
    token = service.request_token("scala-door")
    outcome = await service.redeem("ottavia-door", token.issued_at_ms, token.signature)
    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.INVALID_SIGNATURE
    assert actuator.calls == []


@pytest.mark.asyncio
async def test_unknown_target_on_redeem(clock) -> None:
    outcome = await _service(clock).redeem("nowhere", 1, "sig")
    assert isinstance(outcome, CapabilityError)
    assert outcome.kind is ErrorKind.UNKNOWN_TARGET


@pytest.mark.asyncio
async def test_missing_credential_surfaces_without_network(clock) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    actuator = ActuationClient(
        UpstreamConfig(api_key="", base_url="https://cloud.test"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    service = _service(clock, actuator)
    token = service.request_token("scala-door")
    result = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    assert isinstance(result, ActuationResult)
    assert result.succeeded is False
    assert result.error_kind is ErrorKind.MISSING_CREDENTIAL


@pytest.mark.asyncio
async def test_actuator_exception_becomes_upstream_failure(clock) -> None:
    service = _service(clock, _FakeActuator(exc=RuntimeError("socket closed")))
    token = service.request_token("scala-door")
    result = await service.redeem("scala-door", token.issued_at_ms, token.signature)
    assert isinstance(result, ActuationResult)
    assert result.succeeded is False
    assert result.error_kind is ErrorKind.UPSTREAM_FAILURE


@pytest.mark.asyncio
async def test_operator_paths_skip_token_checks(clock) -> None:
    actuator = _FakeActuator()
    service = _service(clock, actuator)

    direct = await service.actuate_direct("scala-door")
    diag = await service.diagnose("ottavia-door")
    unknown = await service.diagnose("nowhere")

    assert isinstance(direct, ActuationResult) and direct.succeeded
    assert diag == {"target": "ottavia-door", "device_id": "3494547a887d", "result": actuator.result.to_dict()}
    assert isinstance(unknown, CapabilityError) and unknown.kind is ErrorKind.UNKNOWN_TARGET
    assert actuator.calls == ["3494547a1075", "3494547a887d"]
