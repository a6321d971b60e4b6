"""Telemetry sinks - destinations for measurement batches."""

from .base import TelemetrySink
from .console import ConsoleSink
from .file import FileSink
from .zmq import ZmqSink

__all__ = [
    "TelemetrySink",
    "ConsoleSink",
    "FileSink",
    "ZmqSink",
]
