"""Latest known diagnostics per file."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from .sampling import SampledEventEmitter


logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    """Analysis error categories, valued by their protocol names."""
    CHECKED_MODE_COMPILE_TIME_ERROR = "CHECKED_MODE_COMPILE_TIME_ERROR"
    COMPILE_TIME_ERROR = "COMPILE_TIME_ERROR"
    SYNTACTIC_ERROR = "SYNTACTIC_ERROR"
    STATIC_WARNING = "STATIC_WARNING"
    STATIC_TYPE_WARNING = "STATIC_TYPE_WARNING"
    HINT = "HINT"
    LINT = "LINT"
    TODO = "TODO"


# Types that count toward aggregate totals (TODOs are not problems)
COUNTED_TYPES = tuple(t for t in ErrorType if t is not ErrorType.TODO)

# analysisServerStatus labels and the types that roll up into each
STATUS_GROUPS: dict[str, tuple[ErrorType, ...]] = {
    "ERRORS": (
        ErrorType.CHECKED_MODE_COMPILE_TIME_ERROR,
        ErrorType.COMPILE_TIME_ERROR,
        ErrorType.SYNTACTIC_ERROR,
    ),
    "WARNINGS": (
        ErrorType.STATIC_TYPE_WARNING,
        ErrorType.STATIC_WARNING,
    ),
    "HINTS": (ErrorType.HINT,),
    "LINTS": (ErrorType.LINT,),
}


@dataclass(frozen=True, slots=True)
class AnalysisError:
    """A single diagnostic: its code, type and 1-based start line."""
    code: str
    type: ErrorType
    line: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisError:
        """
        Build from either the flat form {"code", "type", "line"} or the
        protocol form with a nested {"location": {"startLine": ...}}.
        """
        line = data.get("line")
        if line is None:
            line = (data.get("location") or {}).get("startLine", 0)
        return cls(
            code=str(data.get("code") or ""),
            type=ErrorType(str(data.get("type", "")).upper()),
            line=int(line),
        )


@dataclass
class ErrorRegistry:
    """
    Holds the most recent full error list for each file.

    Every report replaces the file's snapshot outright; there is no
    merging. Snapshots are kept until forget() or clear() is called.
    """
    sampler: SampledEventEmitter | None = None

    _by_path: dict[str, tuple[AnalysisError, ...]] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def on_errors_computed(self, path: str, errors: Iterable[AnalysisError | None]) -> None:
        errors = tuple(errors)
        snapshot = tuple(e for e in errors if e is not None)
        with self._lock:
            self._by_path[path] = snapshot

        if self.sampler is not None:
            for error in errors:
                self.sampler.maybe_emit(error)

    def errors_for_file(self, path: str | None) -> tuple[AnalysisError, ...]:
        if path is None:
            return ()
        with self._lock:
            return self._by_path.get(path, ())

    def errors_on_line(self, path: str | None, line: int) -> list[str]:
        """Codes of the errors in path that start on line."""
        return [e.code for e in self.errors_for_file(path) if e.line == line]

    def aggregate_counts(self) -> dict[ErrorType, int]:
        """
        Count errors per type across all files, excluding TODOs.

        Walks every snapshot, so call it on discrete triggers such as
        analysis finishing rather than per event.
        """
        with self._lock:
            snapshots = list(self._by_path.values())

        counts = {t: 0 for t in COUNTED_TYPES}
        for snapshot in snapshots:
            for error in snapshot:
                if error.type in counts:
                    counts[error.type] += 1
        return counts

    def status_counts(self) -> dict[str, int]:
        """Aggregate counts rolled up into ERRORS, WARNINGS, HINTS and LINTS."""
        counts = self.aggregate_counts()
        return {
            label: sum(counts[t] for t in types)
            for label, types in STATUS_GROUPS.items()
        }

    def forget(self, path: str) -> bool:
        with self._lock:
            return self._by_path.pop(path, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._by_path.clear()

    @property
    def file_count(self) -> int:
        with self._lock:
            return len(self._by_path)
