"""Deterministic 1-in-N sampling of computed errors."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from ..telemetry.events import COMPUTED_ERROR
from ..telemetry.reporter import TelemetryReporter

if TYPE_CHECKING:
    from .errors import AnalysisError


@dataclass
class SampledEventEmitter:
    """
    Forwards every Nth computed error to telemetry.

    The counter is global across files and error types and starts at 0, so
    the first error is always sampled and k errors yield ceil(k / N) events.
    """
    reporter: TelemetryReporter
    sample_rate: int = 100
    wall_clock: Callable[[], float] = time.time

    _counter: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self):
        if self.sample_rate < 1:
            raise ValueError(f"sample_rate must be >= 1, got {self.sample_rate}")

    def maybe_emit(self, error: AnalysisError | None) -> bool:
        """Count one error and report it if it falls on the sample. Returns True if sent."""
        if error is None:
            return False

        with self._lock:
            sampled = self._counter % self.sample_rate == 0
            self._counter += 1

        if sampled:
            self.reporter.emit(COMPUTED_ERROR, error.code, int(self.wall_clock() * 1000))
        return sampled

    @property
    def count(self) -> int:
        return self._counter
