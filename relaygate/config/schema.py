"""Configuration schema using Pydantic.

In the overall architecture: the single data model and defaults for the
gateway, persisted to ~/.relaygate/config.json.
"""

from pydantic import BaseModel, Field, ConfigDict
from pydantic_settings import BaseSettings


class UpstreamConfig(BaseModel):
    """Shelly Cloud control plane."""
    api_key: str = ""  # Cloud auth_key; empty disables actuation
    base_url: str = "https://shelly-api-eu.shelly.cloud"
    timeout_s: float = 10.0
    relay_channel: int = 0
    primary_path: str = "/device/relay/control"  # Gen1 relay control (form POST)
    fallback_path: str = "/device/rpc"  # Gen2 RPC (JSON POST)


class TokensConfig(BaseModel):
    """Capability token signing and replay window."""
    secret: str = "changeme"
    validity_window_ms: int = 5 * 60 * 1000
    sweep_interval_s: float = 60.0


class GatewayConfig(BaseModel):
    """HTTP gateway configuration."""
    host: str = "0.0.0.0"
    port: int = 10000
    timezone: str = "Europe/Rome"
    # Enables /open?target= and /diag/{target}; empty keeps them disabled.
    operator_token: str = ""
    # Base used for redeem links; empty falls back to the request's own base URL.
    public_base_url: str = ""


class TargetEntry(BaseModel):
    """One door relay addressed through the cloud."""
    device_id: str
    name: str = ""


def _default_targets() -> dict[str, TargetEntry]:
    return {
        "leonina-door": TargetEntry(device_id="3494547a9395", name="Leonina — Apartment Door"),
        "leonina-building-door": TargetEntry(device_id="34945479fbbe", name="Leonina — Building Door"),
        "scala-door": TargetEntry(device_id="3494547a1075", name="Scala — Apartment Door"),
        "scala-building-door": TargetEntry(device_id="3494547745ee", name="Scala — Building Door"),
        "ottavia-door": TargetEntry(device_id="3494547a887d", name="Ottavia — Apartment Door"),
        "ottavia-building-door": TargetEntry(device_id="3494547ab62b", name="Ottavia — Building Door"),
        "viale-trastevere-door": TargetEntry(device_id="34945479fa35", name="Viale Trastevere — Apartment Door"),
        "viale-trastevere-building-door": TargetEntry(
            device_id="34945479fd73", name="Viale Trastevere — Building Door"
        ),
        "arenula-building-door": TargetEntry(device_id="3494547ab05e", name="Arenula — Building Door"),
    }


class Config(BaseSettings):
    """Root configuration for relaygate."""
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    tokens: TokensConfig = Field(default_factory=TokensConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    targets: dict[str, TargetEntry] = Field(default_factory=_default_targets)

    @property
    def has_api_key(self) -> bool:
        return bool(self.upstream.api_key.strip())

    @property
    def uses_default_secret(self) -> bool:
        return self.tokens.secret == TokensConfig().secret

    model_config = ConfigDict(
        env_prefix="RELAYGATE_",
        env_nested_delimiter="__"
    )
