"""Completion accept/reject telemetry, once per lookup session."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Hashable

from ..cache.bounded import BoundedStore
from ..telemetry.events import (
    ACCEPTED_COMPLETION,
    REJECTED_COMPLETION,
    UNKNOWN_LOOKUP_STRING,
)
from ..telemetry.reporter import TelemetryReporter


logger = logging.getLogger(__name__)


class SelectionState(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"  # terminal


@dataclass
class SelectionCorrelator:
    """
    Tracks a single lookup session from OPEN to RESOLVED.

    Several listener callbacks may fire for the same session; only the
    first accept or explicit cancel is reported, the rest are ignored.
    The tracked-file predicate is checked against the session carried by
    each callback, falling back to the one the correlator was created for.
    """
    reporter: TelemetryReporter
    session: Any
    is_tracked: Callable[[Any], bool] = lambda session: True

    _state: SelectionState = field(default=SelectionState.OPEN, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def item_selected(self, item: str | None, prefix_length: int, session: Any = None) -> bool:
        """Report an accepted completion. Returns True if an event was sent."""
        if item is None:
            return False
        if not self._resolve(session):
            return False
        self.reporter.emit(ACCEPTED_COMPLETION, item, prefix_length)
        return True

    def cancelled(self, explicit: bool, session: Any = None) -> bool:
        """Report a rejected completion for explicit cancels only."""
        if not explicit:
            return False
        if not self._resolve(session):
            return False
        self.reporter.emit(REJECTED_COMPLETION, UNKNOWN_LOOKUP_STRING, -1)
        return True

    def _resolve(self, session: Any) -> bool:
        """Move OPEN -> RESOLVED; False if already resolved or not a tracked session."""
        with self._lock:
            if self._state is SelectionState.RESOLVED:
                return False
            if not self._tracked(self.session if session is None else session):
                return False
            self._state = SelectionState.RESOLVED
            return True

    def _tracked(self, session: Any) -> bool:
        try:
            return bool(self.is_tracked(session))
        except Exception as e:
            logger.warning(f"Selection predicate failed for {session!r}: {e}")
            return False

    @property
    def state(self) -> SelectionState:
        return self._state


@dataclass
class SelectionTracker:
    """
    Attaches a fresh SelectionCorrelator to each lookup session.

    Sessions are never pooled: a session seen for the first time gets its
    own correlator, kept in a bounded map so abandoned sessions age out.
    Keys of resolved sessions are remembered separately, so a late callback
    for a session whose correlator was evicted is still ignored.
    """
    reporter: TelemetryReporter
    is_tracked: Callable[[Any], bool] = lambda session: True
    max_sessions: int = 1000
    max_resolved: int = 10000

    _sessions: BoundedStore = field(init=False)
    _resolved: BoundedStore = field(init=False)

    def __post_init__(self):
        self._sessions = BoundedStore(max_size=self.max_sessions)
        self._resolved = BoundedStore(max_size=self.max_resolved)

    def on_lookup_started(self, session: Hashable) -> SelectionCorrelator:
        """Attach a new correlator, replacing any previous one for the same key."""
        correlator = self._new_correlator(session)
        self._resolved.discard(session)
        self._sessions.set(session, correlator)
        return correlator

    def correlator_for(self, session: Hashable) -> SelectionCorrelator:
        return self._sessions.get_or_create(session, lambda: self._new_correlator(session))

    def item_selected(self, session: Hashable, item: str | None, prefix_length: int) -> bool:
        correlator = self._open_correlator(session)
        if correlator is None:
            return False
        return self._record(session, correlator.item_selected(item, prefix_length, session))

    def cancelled(self, session: Hashable, explicit: bool) -> bool:
        correlator = self._open_correlator(session)
        if correlator is None:
            return False
        return self._record(session, correlator.cancelled(explicit, session))

    def _open_correlator(self, session: Hashable) -> SelectionCorrelator | None:
        """The session's correlator, or None if it already resolved and was evicted."""
        correlator = self._sessions.get(session)
        if correlator is not None:
            return correlator
        if session in self._resolved:
            logger.debug(f"Ignoring late callback for resolved session {session!r}")
            return None
        return self.correlator_for(session)

    def _record(self, session: Hashable, reported: bool) -> bool:
        if reported:
            self._resolved.set(session, True)
        return reported

    def _new_correlator(self, session: Hashable) -> SelectionCorrelator:
        return SelectionCorrelator(
            reporter=self.reporter,
            session=session,
            is_tracked=self.is_tracked,
        )

    def clear(self) -> None:
        self._sessions.clear()
        self._resolved.clear()

    @property
    def session_count(self) -> int:
        return len(self._sessions)
