"""Shared test fixtures for analysis telemetry tests."""

from __future__ import annotations

import pytest

from analysis_telemetry.config import Config
from analysis_telemetry.monitor import AnalysisMonitor
from analysis_telemetry.telemetry.events import EventKind, TelemetryEvent
from analysis_telemetry.telemetry.reporter import TelemetryReporter


class RecordingEmitter:
    """Emitter stand-in that keeps every event it is given."""

    def __init__(self):
        self.events: list[TelemetryEvent] = []

    def emit(self, event: TelemetryEvent) -> bool:
        self.events.append(event)
        return True

    def of(self, category: str) -> list[TelemetryEvent]:
        return [e for e in self.events if e.category == category]

    @property
    def exceptions(self) -> list[TelemetryEvent]:
        return [e for e in self.events if e.kind == EventKind.EXCEPTION]


class FakeClock:
    """Monotonic clock under test control, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Telemetry Fixtures
# =============================================================================

@pytest.fixture
def recorder() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def reporter(recorder) -> TelemetryReporter:
    return TelemetryReporter(emitter=recorder)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Monitor Fixtures
# =============================================================================

@pytest.fixture
def config() -> Config:
    """Default configuration with a small sample rate so sampling is observable."""
    return Config.from_dict({"sampling": {"computed_error_sample_rate": 3}})


@pytest.fixture
def monitor(reporter, config, clock) -> AnalysisMonitor:
    monitor = AnalysisMonitor(reporter=reporter, config=config, project="demo", clock=clock)
    yield monitor
    monitor.dispose()
