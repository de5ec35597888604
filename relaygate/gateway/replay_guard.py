"""In-memory single-use guard for consumed token signatures."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from loguru import logger

from relaygate.gateway.token_codec import now_ms as _default_now_ms


class RejectReason(str, Enum):
    EXPIRED = "expired"
    ALREADY_USED = "already_used"


@dataclass
class ReplayRecord:
    signature: str
    expires_at_ms: int


@dataclass
class ConsumeResult:
    accepted: bool
    reason: RejectReason | None = None


class ReplayGuard:
    """Remembers consumed signatures until their validity window elapses.

    Check-and-insert and sweep share one lock, so two callers presenting the
    same signature can never both be admitted, whether they run on the event
    loop or in worker threads.
    """

    def __init__(self):
        self._records: dict[str, ReplayRecord] = {}
        self._lock = threading.Lock()

    def try_consume(self, signature: str, now_ms: int, validity_window_ms: int) -> ConsumeResult:
        if validity_window_ms <= 0:
            return ConsumeResult(accepted=False, reason=RejectReason.EXPIRED)
        with self._lock:
            record = self._records.get(signature)
            if record is not None and record.expires_at_ms > now_ms:
                return ConsumeResult(accepted=False, reason=RejectReason.ALREADY_USED)
            self._records[signature] = ReplayRecord(
                signature=signature,
                expires_at_ms=now_ms + validity_window_ms,
            )
            return ConsumeResult(accepted=True)

    def sweep(self, now_ms: int) -> int:
        """Drop records whose expiry has elapsed. Returns the number removed."""
        with self._lock:
            expired = [sig for sig, rec in self._records.items() if rec.expires_at_ms <= now_ms]
            for sig in expired:
                del self._records[sig]
            return len(expired)

    def contains(self, signature: str) -> bool:
        with self._lock:
            return signature in self._records

    def size(self) -> int:
        with self._lock:
            return len(self._records)

    async def run_sweeper(
        self,
        *,
        interval_s: float,
        stop_event: asyncio.Event,
        now_ms: Callable[[], int] = _default_now_ms,
    ) -> None:
        """Sweep on a fixed interval until stop_event is set."""
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(0.05, interval_s))
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            removed = self.sweep(now_ms())
            if removed:
                logger.debug("Replay guard swept {} expired record(s), {} remaining", removed, self.size())
