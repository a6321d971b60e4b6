"""Tests for first-result latency per opened file."""

import pytest

from analysis_telemetry.correlation.files import FileLatencyTracker, ResultCategory
from analysis_telemetry.telemetry.events import (
    DURATION,
    INITIAL_COMPUTE_ERRORS_TIME,
    INITIAL_HIGHLIGHTS_TIME,
    INITIAL_OUTLINE_TIME,
)


MAIN = "/project/lib/main.dart"


@pytest.fixture
def tracker(reporter, clock):
    return FileLatencyTracker(reporter=reporter, clock=clock)


class TestFirstResult:
    def test_first_errors_after_open_are_timed(self, tracker, recorder, clock):
        tracker.on_file_opened(MAIN)
        clock.advance(1.5)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)

        assert len(recorder.events) == 1
        event = recorder.events[0]
        assert event.category == INITIAL_COMPUTE_ERRORS_TIME
        assert event.label == DURATION
        assert event.value == 1500

    def test_only_first_result_is_timed(self, tracker, recorder):
        tracker.on_file_opened(MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)

        assert len(recorder.of(INITIAL_COMPUTE_ERRORS_TIME)) == 1

    def test_reopen_rearms(self, tracker, recorder):
        tracker.on_file_opened(MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)
        tracker.on_file_opened(MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)

        assert len(recorder.of(INITIAL_COMPUTE_ERRORS_TIME)) == 2

    def test_reopen_restarts_unconsumed_measurement(self, tracker, recorder, clock):
        tracker.on_file_opened(MAIN)
        clock.advance(10.0)
        tracker.on_file_opened(MAIN)
        clock.advance(0.2)
        tracker.on_first_result(ResultCategory.OUTLINE, MAIN)

        assert recorder.events[0].value == 200

    def test_categories_are_independent(self, tracker, recorder):
        tracker.on_file_opened(MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)
        tracker.on_first_result(ResultCategory.HIGHLIGHTS, MAIN)
        tracker.on_first_result(ResultCategory.OUTLINE, MAIN)

        assert [e.category for e in recorder.events] == [
            INITIAL_COMPUTE_ERRORS_TIME,
            INITIAL_HIGHLIGHTS_TIME,
            INITIAL_OUTLINE_TIME,
        ]

    def test_result_without_open_is_ignored(self, tracker, recorder):
        tracker.on_first_result(ResultCategory.HIGHLIGHTS, MAIN)
        tracker.on_first_result(ResultCategory.HIGHLIGHTS, None)

        assert recorder.events == []

    def test_files_are_tracked_separately(self, tracker, recorder):
        tracker.on_file_opened(MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, "/project/lib/other.dart")

        assert recorder.events == []
        assert tracker.is_armed(ResultCategory.ERRORS, MAIN)


class TestLifecycle:
    def test_close_drops_pending_stamps(self, tracker, recorder):
        tracker.on_file_opened(MAIN)
        tracker.on_file_closed(MAIN)
        tracker.on_first_result(ResultCategory.ERRORS, MAIN)

        assert recorder.events == []
        assert not tracker.is_armed(ResultCategory.OUTLINE, MAIN)

    def test_tracked_files_are_bounded(self, reporter, recorder, clock):
        tracker = FileLatencyTracker(reporter=reporter, clock=clock, max_files=1)
        tracker.on_file_opened("/a.dart")
        tracker.on_file_opened("/b.dart")

        assert not tracker.is_armed(ResultCategory.ERRORS, "/a.dart")
        assert tracker.is_armed(ResultCategory.ERRORS, "/b.dart")
