"""First-result latency per opened file."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..cache.bounded import BoundedStore
from ..telemetry.events import (
    DURATION,
    INITIAL_COMPUTE_ERRORS_TIME,
    INITIAL_HIGHLIGHTS_TIME,
    INITIAL_OUTLINE_TIME,
)
from ..telemetry.reporter import TelemetryReporter


logger = logging.getLogger(__name__)


class ResultCategory(str, Enum):
    """Kinds of analysis result whose first arrival after an open is timed."""
    ERRORS = "errors"
    HIGHLIGHTS = "highlights"
    OUTLINE = "outline"

    @property
    def event_name(self) -> str:
        return _EVENT_NAMES[self]


_EVENT_NAMES = {
    ResultCategory.ERRORS: INITIAL_COMPUTE_ERRORS_TIME,
    ResultCategory.HIGHLIGHTS: INITIAL_HIGHLIGHTS_TIME,
    ResultCategory.OUTLINE: INITIAL_OUTLINE_TIME,
}


@dataclass
class FileLatencyTracker:
    """
    Times the first errors/highlights/outline result after a file is opened.

    Each (path, category) stamp is consumed by the first matching result
    and stays consumed until the file is opened again. Later results for
    the same file are not timed.
    """
    reporter: TelemetryReporter
    max_files: int = 10000
    clock: Callable[[], float] = time.monotonic

    # Keyed by (path, category)
    _opened_at: BoundedStore = field(init=False)

    def __post_init__(self):
        self._opened_at = BoundedStore(
            max_size=self.max_files * len(ResultCategory),
            clock=self.clock,
        )

    def on_file_opened(self, path: str) -> None:
        """Arm all categories for path, restarting any unconsumed measurement."""
        now = self.clock()
        for category in ResultCategory:
            self._opened_at.set((path, category), now)

    def on_file_closed(self, path: str) -> None:
        """Forget unconsumed stamps for a closed file."""
        for category in ResultCategory:
            self._opened_at.discard((path, category))

    def on_first_result(self, category: ResultCategory, path: str | None) -> None:
        if path is None:
            return

        opened_at = self._opened_at.pop((path, category))
        if opened_at is None:
            return

        elapsed_ms = int((self.clock() - opened_at) * 1000)
        logger.debug(f"{category.value} for {path} arrived {elapsed_ms}ms after open")
        self.reporter.emit(category.event_name, DURATION, max(elapsed_ms, 0))

    def is_armed(self, category: ResultCategory, path: str) -> bool:
        return (path, category) in self._opened_at

    def clear(self) -> None:
        self._opened_at.clear()

    @property
    def stats(self) -> dict:
        return self._opened_at.stats
