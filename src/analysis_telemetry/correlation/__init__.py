"""Correlation components - each turns one event stream into measurements."""

from .requests import RequestCorrelator, RequestRecord
from .files import FileLatencyTracker, ResultCategory
from .errors import AnalysisError, ErrorRegistry, ErrorType
from .sampling import SampledEventEmitter
from .selection import SelectionCorrelator, SelectionState, SelectionTracker
from .quick_fix import on_quick_fix_invoked
from .exceptions import compose_exception, report_request_error, report_server_error

__all__ = [
    "RequestCorrelator",
    "RequestRecord",
    "FileLatencyTracker",
    "ResultCategory",
    "AnalysisError",
    "ErrorRegistry",
    "ErrorType",
    "SampledEventEmitter",
    "SelectionCorrelator",
    "SelectionState",
    "SelectionTracker",
    "on_quick_fix_invoked",
    "compose_exception",
    "report_request_error",
    "report_server_error",
]
