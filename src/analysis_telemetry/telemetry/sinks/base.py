"""Base sink interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..events import TelemetryEvent


class TelemetrySink(ABC):
    """
    Abstract base class for telemetry sinks.

    Sinks receive batches of events and ship them off-process. Delivery is
    fire and forget; a sink may raise and the batcher will drop the batch.
    """

    @abstractmethod
    async def send(self, events: list[TelemetryEvent]) -> None:
        """Send a batch of events to the sink."""
        ...

    async def start(self) -> None:
        """Initialize the sink (called on startup)."""
        pass

    async def stop(self) -> None:
        """Clean up the sink (called on shutdown)."""
        pass
