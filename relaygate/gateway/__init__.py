"""Capability token signing and replay protection."""

from relaygate.gateway.replay_guard import ConsumeResult, RejectReason, ReplayGuard
from relaygate.gateway.token_codec import Token, TokenCodec, now_ms

__all__ = ["ConsumeResult", "RejectReason", "ReplayGuard", "Token", "TokenCodec", "now_ms"]
