"""Non-blocking telemetry emitter."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from .events import TelemetryEvent


logger = logging.getLogger(__name__)


@dataclass
class TelemetryEmitter:
    """
    Non-blocking telemetry event emitter.

    Events are placed in an asyncio queue and processed asynchronously, so
    correlation code never waits on a sink. emit() may be called from any
    thread: calls made off the loop thread are handed to the loop with
    call_soon_threadsafe.

    Features:
    - Non-blocking emit (fire and forget)
    - Bounded queue with drop-on-overflow
    - Metrics on queue depth and drops
    """
    # Maximum queue depth
    max_queue_size: int = 10000

    # Internal state
    _queue: asyncio.Queue | None = field(default=None, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _consumers: list[Callable[[TelemetryEvent], None]] = field(default_factory=list, init=False)
    _stats: dict = field(default_factory=dict, init=False)
    _stats_lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self):
        self._stats = {
            "emitted": 0,
            "dropped": 0,
            "errors": 0,
        }

    async def start(self) -> None:
        """Initialize the emitter (call on startup, from the event loop)."""
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._loop = asyncio.get_running_loop()
        logger.info(f"Telemetry emitter started (max_queue={self.max_queue_size})")

    async def stop(self) -> None:
        """Stop the emitter and drain remaining events."""
        if self._queue:
            while not self._queue.empty():
                try:
                    event = self._queue.get_nowait()
                    await self._deliver(event)
                except asyncio.QueueEmpty:
                    break
        self._queue = None
        self._loop = None
        logger.info(f"Telemetry emitter stopped. Stats: {self._stats}")

    def add_consumer(self, consumer: Callable[[TelemetryEvent], None]) -> None:
        """
        Add a consumer for events.

        Consumers are called in the background, not on the hot path.
        """
        self._consumers.append(consumer)

    def emit(self, event: TelemetryEvent) -> bool:
        """
        Emit an event (non-blocking, thread-safe).

        Returns True if queued (or handed to the loop), False if dropped.
        """
        queue, loop = self._queue, self._loop
        if queue is None or loop is None:
            logger.warning("Telemetry emitter not started, dropping event")
            self._count("dropped")
            return False

        if self._on_loop_thread(loop):
            return self._put(queue, event)

        try:
            loop.call_soon_threadsafe(self._put, queue, event)
        except RuntimeError:
            # Loop already closed
            self._count("dropped")
            return False
        return True

    def _put(self, queue: asyncio.Queue, event: TelemetryEvent) -> bool:
        try:
            queue.put_nowait(event)
            self._count("emitted")
            return True
        except asyncio.QueueFull:
            self._count("dropped")
            return False

    @staticmethod
    def _on_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1

    async def process_loop(self) -> None:
        """
        Main processing loop - runs continuously.

        Call this as a background task.
        """
        if self._queue is None:
            raise RuntimeError("Emitter not started")

        logger.info("Telemetry processing loop started")

        while True:
            try:
                event = await self._queue.get()
                await self._deliver(event)
                self._queue.task_done()
            except asyncio.CancelledError:
                logger.info("Telemetry processing loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error processing telemetry event: {e}")
                self._count("errors")

    async def _deliver(self, event: TelemetryEvent) -> None:
        """Deliver event to all consumers."""
        for consumer in self._consumers:
            try:
                if asyncio.iscoroutinefunction(consumer):
                    await consumer(event)
                else:
                    consumer(event)
            except Exception as e:
                logger.error(f"Consumer error: {e}")
                self._count("errors")

    @property
    def queue_depth(self) -> int:
        """Current queue depth."""
        return self._queue.qsize() if self._queue else 0

    @property
    def stats(self) -> dict:
        """Get emitter statistics."""
        with self._stats_lock:
            counts = dict(self._stats)
        return {
            **counts,
            "queue_depth": self.queue_depth,
            "consumers": len(self._consumers),
        }
