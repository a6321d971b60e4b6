"""Correlates quick fix invocations with the diagnostics at the caret."""

from __future__ import annotations

from ..telemetry.events import QUICK_FIX
from ..telemetry.reporter import TelemetryReporter
from .errors import ErrorRegistry


def on_quick_fix_invoked(
    registry: ErrorRegistry,
    reporter: TelemetryReporter,
    path: str | None,
    line: int,
    fix_label: str | None,
) -> int:
    """
    Report a quick fix along with how many known errors sit on its line.

    `line` is 1-based, like the stored error locations. Returns the count.
    """
    matched = registry.errors_on_line(path, line)
    reporter.emit(QUICK_FIX, fix_label or "", len(matched))
    return len(matched)
