"""ZeroMQ sink for streaming measurements to an off-process collector."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from ..events import TelemetryEvent
from .base import TelemetrySink


logger = logging.getLogger(__name__)


@dataclass
class ZmqSink(TelemetrySink):
    """
    Publishes events over ZeroMQ (PUB or PUSH socket).

    Each message is "<topic>.<kind> <json>", so subscribers can filter on
    timings, events or exceptions by prefix.
    """
    endpoint: str = "tcp://*:5556"
    topic: str = "analysis"
    socket_type: str = "pub"  # pub | push
    high_water_mark: int = 10000

    _context: Any = field(default=None, init=False)
    _socket: Any = field(default=None, init=False)

    async def start(self) -> None:
        try:
            import zmq
            import zmq.asyncio
        except ImportError:
            raise RuntimeError("pyzmq required: pip install pyzmq")

        self._context = zmq.asyncio.Context()
        kind = zmq.PUB if self.socket_type == "pub" else zmq.PUSH
        self._socket = self._context.socket(kind)
        self._socket.set_hwm(self.high_water_mark)
        self._socket.bind(self.endpoint)

        logger.info(f"ZMQ sink started on {self.endpoint} ({self.socket_type})")

    async def stop(self) -> None:
        if self._socket:
            self._socket.close()
            self._socket = None
        if self._context:
            self._context.term()
            self._context = None

        logger.info("ZMQ sink stopped")

    async def send(self, events: list[TelemetryEvent]) -> None:
        if not self._socket:
            logger.warning("ZMQ sink not started, dropping %d events", len(events))
            return

        for event in events:
            message = f"{self.topic}.{event.kind.value} {json.dumps(event.to_dict(), default=str)}"
            try:
                await self._socket.send_string(message)
            except Exception as e:
                logger.error(f"ZMQ send error: {e}")
