"""Batching telemetry worker for efficient downstream delivery."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from .events import TelemetryEvent


logger = logging.getLogger(__name__)


@dataclass
class TelemetryBatcher:
    """
    Collects telemetry events and flushes them to a sink either when the
    batch is full or the flush interval expires.

    Delivery is best effort: a batch that fails to send is dropped and
    counted, never retried.
    """
    batch_size: int = 500
    flush_interval_seconds: float = 1.0

    # Sink function: receives list of events
    sink: Callable[[list[TelemetryEvent]], Awaitable[None]] | None = None

    # Internal state
    _buffer: list[TelemetryEvent] = field(default_factory=list, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)
    _last_flush: float = field(default_factory=time.monotonic, init=False)
    _stats: dict = field(default_factory=dict, init=False)
    _running: bool = field(default=False, init=False)

    def __post_init__(self):
        self._stats = {
            "batches_sent": 0,
            "events_sent": 0,
            "events_dropped": 0,
            "flush_errors": 0,
        }

    async def add(self, event: TelemetryEvent) -> None:
        """Add an event to the batch."""
        async with self._lock:
            self._buffer.append(event)

            if len(self._buffer) >= self.batch_size:
                await self._flush_unsafe()

    async def flush(self) -> None:
        """Force flush the current batch."""
        async with self._lock:
            await self._flush_unsafe()

    async def _flush_unsafe(self) -> None:
        """Flush without lock (caller must hold lock)."""
        if not self._buffer:
            return

        batch = self._buffer.copy()
        self._buffer.clear()
        self._last_flush = time.monotonic()

        if self.sink is None:
            logger.warning("No sink configured, discarding batch")
            self._stats["events_dropped"] += len(batch)
            return

        try:
            await self.sink(batch)
            self._stats["batches_sent"] += 1
            self._stats["events_sent"] += len(batch)
        except Exception as e:
            logger.error(f"Failed to flush telemetry batch: {e}")
            self._stats["flush_errors"] += 1
            self._stats["events_dropped"] += len(batch)

    async def timer_loop(self) -> None:
        """
        Background loop that flushes on interval.

        Ensures events don't sit in buffer too long during low traffic.
        """
        self._running = True
        logger.info(f"Telemetry batcher timer started (interval={self.flush_interval_seconds}s)")

        while self._running:
            try:
                await asyncio.sleep(self.flush_interval_seconds)

                async with self._lock:
                    elapsed = time.monotonic() - self._last_flush
                    if self._buffer and elapsed >= self.flush_interval_seconds:
                        await self._flush_unsafe()

            except asyncio.CancelledError:
                logger.info("Telemetry batcher timer cancelled")
                break
            except Exception as e:
                logger.error(f"Batcher timer error: {e}")

    async def stop(self) -> None:
        """Stop the batcher and flush remaining events."""
        self._running = False
        await self.flush()
        logger.info(f"Telemetry batcher stopped. Stats: {self._stats}")

    @property
    def buffer_size(self) -> int:
        """Current buffer size."""
        return len(self._buffer)

    @property
    def stats(self) -> dict:
        """Get batcher statistics."""
        return {
            **self._stats,
            "buffer_size": self.buffer_size,
            "seconds_since_flush": time.monotonic() - self._last_flush,
        }


def create_batched_consumer(batcher: TelemetryBatcher) -> Callable[[TelemetryEvent], Awaitable[None]]:
    """
    Create a consumer that feeds emitted events into a batcher.

    Usage:
        batcher = TelemetryBatcher(sink=my_sink.send)
        emitter.add_consumer(create_batched_consumer(batcher))
    """
    async def consumer(event: TelemetryEvent) -> None:
        await batcher.add(event)

    return consumer
