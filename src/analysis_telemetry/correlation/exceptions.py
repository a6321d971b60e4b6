"""Exception-shaped telemetry for protocol failures."""

from __future__ import annotations

from ..telemetry.reporter import TelemetryReporter


ERROR_TYPE_REQUEST = "R"
ERROR_TYPE_SERVER = "@"

MAX_EXCEPTION_LENGTH = 150


def compose_exception(error_type: str, code: str | None, stack: str | None) -> str:
    """
    Build "<type> <code>[\\n<stack>]", falling back to the stack alone and
    then to "exception". Anything over 150 characters is cut to 149.
    """
    if code:
        description = f"{error_type} {code}"
        if stack:
            description += "\n" + stack
    elif stack:
        description = f"{error_type} {stack}"
    else:
        description = f"{error_type} exception"

    if len(description) > MAX_EXCEPTION_LENGTH:
        description = description[:MAX_EXCEPTION_LENGTH - 1]
    return description


def report_request_error(
    reporter: TelemetryReporter,
    code: str | None,
    message: str | None,
    stack: str | None,
) -> str:
    """A request failed; the message stands in for a missing code."""
    description = compose_exception(ERROR_TYPE_REQUEST, code or message, stack)
    reporter.emit_exception(description, fatal=False)
    return description


def report_server_error(
    reporter: TelemetryReporter,
    fatal: bool,
    message: str | None,
    stack: str | None,
) -> str:
    description = compose_exception(ERROR_TYPE_SERVER, message, stack)
    reporter.emit_exception(description, fatal=fatal)
    return description
