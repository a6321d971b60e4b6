"""Per-project analysis monitor - the entry point for all inbound events."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, Mapping

from .channels import InboundChannels
from .config import Config
from .correlation.errors import AnalysisError, ErrorRegistry
from .correlation.exceptions import report_request_error, report_server_error
from .correlation.files import FileLatencyTracker, ResultCategory
from .correlation.quick_fix import on_quick_fix_invoked
from .correlation.requests import RequestCorrelator
from .correlation.sampling import SampledEventEmitter
from .correlation.selection import SelectionTracker
from .protocol import (
    SERVER_LOG_EVENT,
    ServerLogEntry,
    decode,
    message_id,
    parse_log_entry,
    request_method,
    server_log_entry,
)
from .telemetry.events import (
    ANALYSIS_SERVER_LOG,
    ANALYSIS_SERVER_STATUS,
    E2E_COMPLETION_TIME,
    FAILURE,
    SUCCESS,
)
from .telemetry.reporter import TelemetryReporter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupSession:
    """A completion session as seen from outside the editor, keyed by id."""
    session_id: str
    file_path: str | None = field(default=None, compare=False)


def tracked_file_predicate(extensions: Iterable[str]) -> Callable[[Any], bool]:
    """
    Predicate accepting sessions whose file has one of the given extensions.

    Sessions may be a path string or expose a `file_path` attribute.
    """
    suffixes = tuple(ext.lower() for ext in extensions)

    def is_tracked(session: Any) -> bool:
        path = session if isinstance(session, str) else getattr(session, "file_path", None)
        return bool(path) and str(path).lower().endswith(suffixes)

    return is_tracked


@dataclass
class AnalysisMonitor:
    """
    Owns the correlation state for one monitored project.

    Event methods may be called from any thread and never raise for
    unmatched or malformed input. attach() subscribes to a set of inbound
    channels; dispose() unsubscribes them and drops all state.
    """
    reporter: TelemetryReporter
    config: Config = field(default_factory=Config)
    project: str = "default"
    is_tracked_session: Callable[[Any], bool] | None = None
    clock: Callable[[], float] = time.monotonic

    requests: RequestCorrelator = field(init=False)
    files: FileLatencyTracker = field(init=False)
    sampler: SampledEventEmitter = field(init=False)
    errors: ErrorRegistry = field(init=False)
    selections: SelectionTracker = field(init=False)

    _unsubscribers: list[Callable[[], None]] = field(default_factory=list, init=False)
    _disposed: bool = field(default=False, init=False)

    def __post_init__(self):
        retention = self.config.retention
        if self.is_tracked_session is None:
            self.is_tracked_session = tracked_file_predicate(self.config.selection.tracked_extensions)

        self.requests = RequestCorrelator(
            reporter=self.reporter,
            max_pending=retention.max_pending_requests,
            ttl_seconds=retention.pending_request_ttl_seconds,
            clock=self.clock,
        )
        self.files = FileLatencyTracker(
            reporter=self.reporter,
            max_files=retention.max_tracked_files,
            clock=self.clock,
        )
        self.sampler = SampledEventEmitter(
            reporter=self.reporter,
            sample_rate=self.config.sampling.computed_error_sample_rate,
        )
        self.errors = ErrorRegistry(sampler=self.sampler)
        self.selections = SelectionTracker(
            reporter=self.reporter,
            is_tracked=self.is_tracked_session,
            max_sessions=retention.max_open_sessions,
        )

    # =========================================================================
    # Protocol transport
    # =========================================================================

    def on_request(self, message: str | Mapping[str, Any]) -> None:
        """Raw outgoing request: remember its id and method."""
        decoded = decode(message)
        if decoded is None:
            return
        request_id = message_id(decoded)
        if request_id is None:
            logger.debug("Outgoing request without id, not timed")
            return
        self.on_request_sent(request_id, request_method(decoded))

    def on_response(self, message: str | Mapping[str, Any]) -> None:
        """Raw incoming message: forward server logs, then close any matching request."""
        decoded = decode(message)
        if decoded is None:
            return

        self._report_server_log(server_log_entry(decoded))
        self.on_response_received(message_id(decoded))

    def on_response_event(
        self,
        request_id: str | None,
        event_name: str | None = None,
        log_entry: Mapping[str, Any] | None = None,
    ) -> None:
        """Already-parsed incoming message: id, notification name and log entry."""
        if event_name == SERVER_LOG_EVENT:
            self._report_server_log(parse_log_entry(log_entry))
        self.on_response_received(request_id)

    def _report_server_log(self, entry: ServerLogEntry | None) -> None:
        if entry is None:
            return
        if entry.sdk_version:
            self.reporter.emit_with_tag(ANALYSIS_SERVER_LOG, entry.format(), entry.sdk_version)
        else:
            self.reporter.emit(ANALYSIS_SERVER_LOG, entry.format())

    def on_request_sent(self, request_id: str, method: str) -> None:
        self.requests.on_request_sent(request_id, method)

    def on_response_received(self, request_id: str | None) -> None:
        self.requests.on_response_received(request_id)

    def on_request_error(self, code: str | None, message: str | None, stack: str | None) -> None:
        report_request_error(self.reporter, code, message, stack)

    def on_server_error(self, fatal: bool, message: str | None, stack: str | None) -> None:
        report_server_error(self.reporter, fatal, message, stack)

    def on_server_status(self, is_analyzing: bool) -> None:
        """When analysis finishes, report project-wide diagnostics totals."""
        if is_analyzing:
            return
        for label, count in self.errors.status_counts().items():
            self.reporter.emit(ANALYSIS_SERVER_STATUS, label, count)

    # =========================================================================
    # Analysis results
    # =========================================================================

    def on_errors_computed(self, path: str, errors: Iterable[AnalysisError | Mapping[str, Any] | None]) -> None:
        self.errors.on_errors_computed(path, self._coerce_errors(path, errors))
        self.files.on_first_result(ResultCategory.ERRORS, path)

    def on_highlights_computed(self, path: str) -> None:
        self.files.on_first_result(ResultCategory.HIGHLIGHTS, path)

    def on_outline_computed(self, path: str) -> None:
        self.files.on_first_result(ResultCategory.OUTLINE, path)

    @staticmethod
    def _coerce_errors(path: str, errors: Iterable[Any]) -> list[AnalysisError | None]:
        coerced: list[AnalysisError | None] = []
        for error in errors or ():
            if error is None or isinstance(error, AnalysisError):
                coerced.append(error)
                continue
            try:
                coerced.append(AnalysisError.from_dict(error))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed error for {path}: {e}")
        return coerced

    # =========================================================================
    # Editor
    # =========================================================================

    def on_file_opened(self, path: str) -> None:
        self.files.on_file_opened(path)

    def on_file_closed(self, path: str) -> None:
        self.files.on_file_closed(path)

    def on_quick_fix_invoked(self, path: str | None, line: int, label: str | None) -> int:
        return on_quick_fix_invoked(self.errors, self.reporter, path, line, label)

    def on_lookup_started(self, session: Hashable) -> None:
        self.selections.on_lookup_started(session)

    def on_selection_item(self, session: Hashable, item: str | None, prefix_length: int) -> bool:
        return self.selections.item_selected(session, item, prefix_length)

    def on_selection_cancelled(self, session: Hashable, explicit: bool) -> bool:
        return self.selections.cancelled(session, explicit)

    def log_e2e_completion(self, duration_ms: int, success: bool) -> None:
        """End-to-end completion time as measured by the editor."""
        self.reporter.emit_timing(E2E_COMPLETION_TIME, SUCCESS if success else FAILURE, duration_ms)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self, channels: InboundChannels) -> None:
        """Subscribe every event handler to its channel."""
        if self._disposed:
            raise RuntimeError(f"Monitor for {self.project} has been disposed")

        bindings = [
            (channels.request_sent, self.on_request_sent),
            (channels.response_received, self.on_response_event),
            (channels.request_error, self.on_request_error),
            (channels.server_error, self.on_server_error),
            (channels.server_status, self.on_server_status),
            (channels.errors_computed, self.on_errors_computed),
            (channels.highlights_computed, self.on_highlights_computed),
            (channels.outline_computed, self.on_outline_computed),
            (channels.file_opened, self.on_file_opened),
            (channels.file_closed, self.on_file_closed),
            (channels.quick_fix_invoked, self.on_quick_fix_invoked),
            (channels.lookup_started, self.on_lookup_started),
            (channels.selection_item, self.on_selection_item),
            (channels.selection_cancelled, self.on_selection_cancelled),
        ]
        for channel, handler in bindings:
            self._unsubscribers.append(channel.subscribe(handler))
        logger.info(f"Analysis monitor for {self.project} attached to {len(bindings)} channels")

    def dispose(self) -> None:
        """Unsubscribe from all channels and drop correlation state."""
        if self._disposed:
            return
        self._disposed = True

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        self.requests.clear()
        self.files.clear()
        self.errors.clear()
        self.selections.clear()
        logger.info(f"Analysis monitor for {self.project} disposed")

    def cleanup_expired(self) -> int:
        return self.requests.cleanup_expired()

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def stats(self) -> dict:
        return {
            "project": self.project,
            "pending_requests": self.requests.pending_count,
            "file_stamps": self.files.stats["size"],
            "files_with_errors": self.errors.file_count,
            "errors_seen": self.sampler.count,
            "open_sessions": self.selections.session_count,
        }


@dataclass
class MonitorRegistry:
    """One AnalysisMonitor per project, created on first use."""
    reporter: TelemetryReporter
    config: Config = field(default_factory=Config)

    _monitors: dict[str, AnalysisMonitor] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def get_or_create(self, project: str) -> AnalysisMonitor:
        with self._lock:
            monitor = self._monitors.get(project)
            if monitor is None:
                monitor = AnalysisMonitor(reporter=self.reporter, config=self.config, project=project)
                self._monitors[project] = monitor
                logger.info(f"Created analysis monitor for {project}")
            return monitor

    def get(self, project: str) -> AnalysisMonitor | None:
        with self._lock:
            return self._monitors.get(project)

    def dispose(self, project: str) -> bool:
        with self._lock:
            monitor = self._monitors.pop(project, None)
        if monitor is None:
            return False
        monitor.dispose()
        return True

    def dispose_all(self) -> None:
        with self._lock:
            monitors = list(self._monitors.values())
            self._monitors.clear()
        for monitor in monitors:
            monitor.dispose()

    def cleanup_expired(self) -> int:
        with self._lock:
            monitors = list(self._monitors.values())
        return sum(m.cleanup_expired() for m in monitors)

    @property
    def projects(self) -> list[str]:
        with self._lock:
            return sorted(self._monitors)
