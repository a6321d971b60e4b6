"""Telemetry event types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    """Shape of a telemetry event, as understood by the analytics backend."""
    EVENT = "event"
    TIMING = "timing"
    EXCEPTION = "exception"


# Event categories
COMPUTED_ERROR = "computedError"
INITIAL_COMPUTE_ERRORS_TIME = "initialComputeErrorsTime"
INITIAL_HIGHLIGHTS_TIME = "initialHighlightsTime"
INITIAL_OUTLINE_TIME = "initialOutlineTime"
ROUND_TRIP_TIME = "roundTripTime"
QUICK_FIX = "quickFix"
ANALYSIS_SERVER_LOG = "analysisServerLog"
ANALYSIS_SERVER_STATUS = "analysisServerStatus"
ACCEPTED_COMPLETION = "acceptedCompletion"
REJECTED_COMPLETION = "rejectedCompletion"
E2E_COMPLETION_TIME = "e2eIJCompletionTime"

# Labels
DURATION = "duration"
SUCCESS = "success"
FAILURE = "failure"
UNKNOWN_LOOKUP_STRING = "<unknown>"


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """
    A single measurement bound for the analytics backend.

    `value` holds the metric (milliseconds for timings, counts for
    metrics); it is None for exception events and plain log events.
    """
    kind: EventKind
    category: str
    label: str
    value: int | None = None

    # Optional version tag (server log entries carrying an sdkVersion)
    tag: str | None = None

    # Only meaningful for exception events
    fatal: bool = False

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def event(cls, category: str, label: str, value: int | None = None) -> TelemetryEvent:
        return cls(kind=EventKind.EVENT, category=category, label=label, value=value)

    @classmethod
    def timing(cls, category: str, label: str, millis: int) -> TelemetryEvent:
        return cls(kind=EventKind.TIMING, category=category, label=label, value=millis)

    @classmethod
    def tagged(cls, category: str, label: str, tag: str) -> TelemetryEvent:
        return cls(kind=EventKind.EVENT, category=category, label=label, tag=tag)

    @classmethod
    def exception(cls, description: str, fatal: bool = False) -> TelemetryEvent:
        return cls(kind=EventKind.EXCEPTION, category="exception", label=description, fatal=fatal)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "category": self.category,
            "label": self.label,
            "value": self.value,
            "tag": self.tag,
            "fatal": self.fatal,
            "timestamp": self.timestamp.isoformat(),
        }
