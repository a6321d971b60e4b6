"""Tests for exception-shaped protocol error telemetry."""

from analysis_telemetry.correlation.exceptions import (
    ERROR_TYPE_REQUEST,
    ERROR_TYPE_SERVER,
    compose_exception,
    report_request_error,
    report_server_error,
)


class TestComposeException:
    def test_code_only(self):
        assert compose_exception("R", "abc", "") == "R abc"

    def test_stack_only(self):
        assert compose_exception("R", "", "xyz") == "R xyz"

    def test_neither(self):
        assert compose_exception("R", "", "") == "R exception"
        assert compose_exception("R", None, None) == "R exception"

    def test_code_and_stack(self):
        assert compose_exception("@", "boom", "at foo\nat bar") == "@ boom\nat foo\nat bar"

    def test_long_description_is_truncated_to_149(self):
        description = compose_exception("R", "x" * 200, None)

        assert len(description) == 149
        assert description.startswith("R xxx")

    def test_exactly_150_is_kept(self):
        description = compose_exception("R", "x" * 148, None)

        assert len(description) == 150


class TestReporting:
    def test_request_error_falls_back_to_message(self, reporter, recorder):
        description = report_request_error(reporter, None, "INVALID_PARAMETER", "")

        assert description == f"{ERROR_TYPE_REQUEST} INVALID_PARAMETER"
        event = recorder.exceptions[0]
        assert event.label == description
        assert not event.fatal

    def test_request_error_prefers_code(self, reporter, recorder):
        report_request_error(reporter, "SERVER_ERROR", "ignored", None)

        assert recorder.exceptions[0].label == "R SERVER_ERROR"

    def test_server_error_passes_fatal_flag(self, reporter, recorder):
        report_server_error(reporter, True, "crashed", "trace")

        event = recorder.exceptions[0]
        assert event.label == f"{ERROR_TYPE_SERVER} crashed\ntrace"
        assert event.fatal
