"""Round-trip timing for analysis protocol requests."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from ..cache.bounded import BoundedStore
from ..telemetry.events import ROUND_TRIP_TIME
from ..telemetry.reporter import TelemetryReporter


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RequestRecord:
    """An outstanding request: protocol method and when it was sent."""
    method: str
    started_at: float


@dataclass
class RequestCorrelator:
    """
    Matches request ids to their responses and reports the round trip.

    A response whose id is unknown, already consumed or expired is
    ignored; server-pushed notifications carry no id at all.
    """
    reporter: TelemetryReporter
    max_pending: int = 10000
    ttl_seconds: float = 300.0
    clock: Callable[[], float] = time.monotonic

    _pending: BoundedStore = field(init=False)

    def __post_init__(self):
        self._pending = BoundedStore(
            max_size=self.max_pending,
            ttl_seconds=self.ttl_seconds,
            clock=self.clock,
        )

    def on_request_sent(self, request_id: str, method: str) -> None:
        """Record a request; a second request with the same id replaces the first."""
        self._pending.set(request_id, RequestRecord(method=method, started_at=self.clock()))

    def on_response_received(self, request_id: str | None) -> None:
        if request_id is None:
            return

        record = self._pending.pop(request_id)
        if record is None:
            logger.debug(f"No pending request for response id {request_id!r}")
            return

        elapsed_ms = int((self.clock() - record.started_at) * 1000)
        self.reporter.emit_timing(ROUND_TRIP_TIME, record.method, elapsed_ms)

    def cleanup_expired(self) -> int:
        """Drop requests that never got a response within the TTL."""
        return self._pending.cleanup_expired()

    def clear(self) -> None:
        self._pending.clear()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def stats(self) -> dict:
        return self._pending.stats
