"""Console sink for development/debugging."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass

from ..events import EventKind, TelemetryEvent
from .base import TelemetrySink


@dataclass
class ConsoleSink(TelemetrySink):
    """Writes events to stdout/stderr."""
    stream: str = "stdout"  # stdout | stderr
    format: str = "compact"  # json | compact
    prefix: str = "[TELEMETRY] "

    async def send(self, events: list[TelemetryEvent]) -> None:
        out = sys.stdout if self.stream == "stdout" else sys.stderr

        for event in events:
            print(f"{self.prefix}{self._format_event(event)}", file=out)

    def _format_event(self, event: TelemetryEvent) -> str:
        if self.format == "json":
            return json.dumps(event.to_dict(), default=str)

        if event.kind == EventKind.EXCEPTION:
            fatal = " fatal" if event.fatal else ""
            first_line = event.label.splitlines()[0] if event.label else ""
            return f"{event.timestamp.isoformat()} exception{fatal} {first_line}"

        line = f"{event.timestamp.isoformat()} {event.kind.value} {event.category} {event.label!r}"
        if event.value is not None:
            suffix = "ms" if event.kind == EventKind.TIMING else ""
            line += f" {event.value}{suffix}"
        if event.tag:
            line += f" [{event.tag}]"
        return line
