"""Outbound measurement API used by the correlation components."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol

from .events import TelemetryEvent


logger = logging.getLogger(__name__)


class EventEmitter(Protocol):
    def emit(self, event: TelemetryEvent) -> bool: ...


@dataclass
class TelemetryReporter:
    """
    Builds TelemetryEvents and hands them to an emitter.

    Fire and forget: a failing or disabled emitter never raises back into
    the correlation code. Callers must not hold their own locks while
    reporting.
    """
    emitter: EventEmitter | None = None
    enabled: bool = True

    _failures: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def emit(self, category: str, label: str, value: int | None = None) -> None:
        """Send a (category, label, value) event."""
        self._send(TelemetryEvent.event(category, label or "", value))

    def emit_timing(self, category: str, label: str, millis: int) -> None:
        """Send a timing measurement in milliseconds."""
        self._send(TelemetryEvent.timing(category, label or "", max(int(millis), 0)))

    def emit_with_tag(self, category: str, label: str, tag: str) -> None:
        """Send an event carrying a version tag."""
        self._send(TelemetryEvent.tagged(category, label or "", tag))

    def emit_exception(self, description: str, fatal: bool = False) -> None:
        """Send an exception-shaped event."""
        self._send(TelemetryEvent.exception(description, fatal))

    def _send(self, event: TelemetryEvent) -> None:
        if not self.enabled or self.emitter is None:
            return
        try:
            self.emitter.emit(event)
        except Exception as e:
            with self._lock:
                self._failures += 1
            logger.error(f"Failed to emit {event.category} event: {e}")

    @property
    def failures(self) -> int:
        return self._failures
