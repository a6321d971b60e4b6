"""File-based sink for telemetry."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from ..events import TelemetryEvent
from .base import TelemetrySink


@dataclass
class FileSink(TelemetrySink):
    """
    Appends events to a JSONL file, one event per line.

    When max_bytes is set and the file grows past it, the file is renamed
    to `<name>.1` (replacing any previous one) and a fresh file is started.
    """
    path: str = "telemetry.jsonl"
    encoding: str = "utf-8"
    max_bytes: int = 0  # 0 = no rotation

    _file: IO[str] | None = field(default=None, init=False)

    async def start(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding=self.encoding)

    async def stop(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    async def send(self, events: list[TelemetryEvent]) -> None:
        if not self._file:
            await self.start()

        for event in events:
            self._file.write(json.dumps(event.to_dict(), default=str) + "\n")
        self._file.flush()

        if self.max_bytes and self._file.tell() >= self.max_bytes:
            await self._rotate()

    async def _rotate(self) -> None:
        await self.stop()
        current = Path(self.path)
        current.replace(current.with_name(current.name + ".1"))
        await self.start()
