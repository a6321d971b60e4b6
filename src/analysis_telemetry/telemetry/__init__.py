"""Telemetry plumbing - events, non-blocking emitter, batching and sinks."""

from .events import TelemetryEvent, EventKind
from .emitter import TelemetryEmitter
from .batcher import TelemetryBatcher, create_batched_consumer
from .reporter import TelemetryReporter

__all__ = [
    "TelemetryEvent",
    "EventKind",
    "TelemetryEmitter",
    "TelemetryBatcher",
    "create_batched_consumer",
    "TelemetryReporter",
]
