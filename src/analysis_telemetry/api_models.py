"""Pydantic request/response models for the ingest API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .correlation.errors import AnalysisError, ErrorType


# =============================================================================
# Inbound events
# =============================================================================

class ProtocolMessage(BaseModel):
    """A raw protocol request or response, as JSON text or an object."""
    message: dict[str, Any] | str


class FileEvent(BaseModel):
    path: str


class ErrorItem(BaseModel):
    code: str = ""
    type: ErrorType
    line: int = Field(ge=0)

    def to_error(self) -> AnalysisError:
        return AnalysisError(code=self.code, type=self.type, line=self.line)


class ErrorsReport(BaseModel):
    """Full error list for one file; replaces whatever was known before."""
    path: str
    errors: list[ErrorItem] = []


class AnalysisStatusReport(BaseModel):
    is_analyzing: bool


class RequestErrorReport(BaseModel):
    code: str | None = None
    message: str | None = None
    stack: str | None = None


class ServerErrorReport(BaseModel):
    fatal: bool = False
    message: str | None = None
    stack: str | None = None


class QuickFixReport(BaseModel):
    path: str
    line: int = Field(ge=0, description="1-based caret line")
    label: str = ""


class SelectionReport(BaseModel):
    item: str | None = None
    prefix_length: int = 0
    file_path: str | None = None


class CancellationReport(BaseModel):
    explicit: bool
    file_path: str | None = None


class CompletionTimingReport(BaseModel):
    duration_ms: int = Field(ge=0)
    success: bool = True


# =============================================================================
# Responses
# =============================================================================

class AcceptedResponse(BaseModel):
    status: str = "accepted"


class QuickFixResponse(BaseModel):
    matched_errors: int


class SelectionResponse(BaseModel):
    reported: bool


class ErrorCountsResponse(BaseModel):
    project: str
    counts: dict[str, int]
    status: dict[str, int]


class ErrorsOnLineResponse(BaseModel):
    project: str
    path: str
    line: int
    codes: list[str]


class HealthResponse(BaseModel):
    status: str
    projects: list[str]
    telemetry: dict[str, Any]
    batcher: dict[str, Any]
