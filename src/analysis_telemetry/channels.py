"""Inbound event channels, one per event kind."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, fields
from typing import Any, Callable


logger = logging.getLogger(__name__)

Handler = Callable[..., None]


@dataclass(eq=False)
class EventChannel:
    """
    A named fan-out point for one kind of inbound event.

    Handlers run synchronously on the publisher's thread. A failing
    handler is logged and does not stop delivery to the others.
    """
    name: str

    _handlers: list[Handler] = field(default_factory=list, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _errors: int = field(default=0, init=False)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register a handler. Returns a function that unsubscribes it."""
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def publish(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            handlers = list(self._handlers)

        for handler in handlers:
            try:
                handler(*args, **kwargs)
            except Exception as e:
                with self._lock:
                    self._errors += 1
                logger.error(f"Handler error on {self.name} channel: {e}")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    @property
    def errors(self) -> int:
        return self._errors


def _channel(name: str):
    return field(default_factory=lambda: EventChannel(name))


@dataclass
class InboundChannels:
    """The event sources an AnalysisMonitor listens to."""
    # Protocol transport
    request_sent: EventChannel = _channel("request_sent")
    response_received: EventChannel = _channel("response_received")
    request_error: EventChannel = _channel("request_error")
    server_error: EventChannel = _channel("server_error")
    server_status: EventChannel = _channel("server_status")

    # Analysis results
    errors_computed: EventChannel = _channel("errors_computed")
    highlights_computed: EventChannel = _channel("highlights_computed")
    outline_computed: EventChannel = _channel("outline_computed")

    # Editor
    file_opened: EventChannel = _channel("file_opened")
    file_closed: EventChannel = _channel("file_closed")
    quick_fix_invoked: EventChannel = _channel("quick_fix_invoked")
    lookup_started: EventChannel = _channel("lookup_started")
    selection_item: EventChannel = _channel("selection_item")
    selection_cancelled: EventChannel = _channel("selection_cancelled")

    def all(self) -> dict[str, EventChannel]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
