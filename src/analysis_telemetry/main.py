"""FastAPI application - Analysis Telemetry ingest service.

Editors and protocol proxies POST their events here; the service correlates
them per project and streams the derived measurements to the configured
telemetry sink.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query

from .api_models import (
    AcceptedResponse,
    AnalysisStatusReport,
    CancellationReport,
    CompletionTimingReport,
    ErrorCountsResponse,
    ErrorsOnLineResponse,
    ErrorsReport,
    FileEvent,
    HealthResponse,
    ProtocolMessage,
    QuickFixReport,
    QuickFixResponse,
    RequestErrorReport,
    SelectionReport,
    SelectionResponse,
    ServerErrorReport,
)
from .config import Config, load_config
from .monitor import AnalysisMonitor, LookupSession, MonitorRegistry
from .telemetry.batcher import TelemetryBatcher, create_batched_consumer
from .telemetry.emitter import TelemetryEmitter
from .telemetry.reporter import TelemetryReporter
from .telemetry.sinks.base import TelemetrySink
from .telemetry.sinks.console import ConsoleSink
from .telemetry.sinks.file import FileSink
from .telemetry.sinks.zmq import ZmqSink


logger = logging.getLogger(__name__)

# How often pending requests past their TTL are swept
CLEANUP_INTERVAL_SECONDS = 60.0


# Global state (initialized in lifespan)
_registry: MonitorRegistry | None = None
_emitter: TelemetryEmitter | None = None
_batcher: TelemetryBatcher | None = None
_sink: TelemetrySink | None = None
_tasks: list[asyncio.Task] = []


def create_sink(config: Config) -> TelemetrySink:
    """Create the sink named by the telemetry config."""
    sink_type = config.telemetry.sink_type
    sink_config = config.telemetry.sink_config

    if sink_type == "console":
        return ConsoleSink(**sink_config)
    if sink_type == "file":
        return FileSink(**sink_config)
    if sink_type == "zmq":
        return ZmqSink(**sink_config)

    logger.warning(f"Unknown sink type {sink_type!r}, using console")
    return ConsoleSink()


async def create_telemetry(config: Config) -> tuple[TelemetryEmitter, TelemetryBatcher, TelemetrySink]:
    """Create telemetry emitter, batcher and sink, wired together."""
    emitter = TelemetryEmitter(max_queue_size=config.telemetry.max_queue_size)
    sink = create_sink(config)
    await sink.start()

    batcher = TelemetryBatcher(
        batch_size=config.telemetry.batch_size,
        flush_interval_seconds=config.telemetry.flush_interval_seconds,
        sink=sink.send,
    )
    emitter.add_consumer(create_batched_consumer(batcher))

    return emitter, batcher, sink


async def cleanup_loop(registry: MonitorRegistry, interval: float = CLEANUP_INTERVAL_SECONDS) -> None:
    """Periodically drop pending requests that never got a response."""
    while True:
        try:
            await asyncio.sleep(interval)
            removed = registry.cleanup_expired()
            if removed:
                logger.info(f"Expired {removed} pending requests")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Cleanup loop error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    global _registry, _emitter, _batcher, _sink, _tasks

    logger.info("Starting analysis telemetry service...")

    config = load_config()

    _emitter, _batcher, _sink = await create_telemetry(config)
    await _emitter.start()

    reporter = TelemetryReporter(emitter=_emitter, enabled=config.telemetry.enabled)
    _registry = MonitorRegistry(reporter=reporter, config=config)

    _tasks = [
        asyncio.create_task(_emitter.process_loop()),
        asyncio.create_task(_batcher.timer_loop()),
        asyncio.create_task(cleanup_loop(_registry)),
    ]

    logger.info("Analysis telemetry service started")

    yield

    logger.info("Shutting down analysis telemetry service...")

    _registry.dispose_all()

    for task in _tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    _tasks = []

    await _emitter.stop()
    await _batcher.stop()
    await _sink.stop()

    logger.info("Analysis telemetry service stopped")


app = FastAPI(
    title="Analysis Telemetry Service",
    description="Correlates analysis-server and editor events into latency and usage measurements.",
    version="0.1.0",
    lifespan=lifespan,
)


def _monitor(project: str) -> AnalysisMonitor:
    if not _registry:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _registry.get_or_create(project)


def _existing_monitor(project: str) -> AnalysisMonitor:
    if not _registry:
        raise HTTPException(status_code=503, detail="Service not initialized")
    monitor = _registry.get(project)
    if monitor is None:
        raise HTTPException(status_code=404, detail=f"Unknown project: {project}")
    return monitor


# =============================================================================
# Protocol transport
# =============================================================================

@app.post("/projects/{project}/protocol/request", response_model=AcceptedResponse)
async def protocol_request(project: str, body: ProtocolMessage):
    _monitor(project).on_request(body.message)
    return AcceptedResponse()


@app.post("/projects/{project}/protocol/response", response_model=AcceptedResponse)
async def protocol_response(project: str, body: ProtocolMessage):
    _monitor(project).on_response(body.message)
    return AcceptedResponse()


@app.post("/projects/{project}/analysis/request-error", response_model=AcceptedResponse)
async def request_error(project: str, body: RequestErrorReport):
    _monitor(project).on_request_error(body.code, body.message, body.stack)
    return AcceptedResponse()


@app.post("/projects/{project}/analysis/server-error", response_model=AcceptedResponse)
async def server_error(project: str, body: ServerErrorReport):
    _monitor(project).on_server_error(body.fatal, body.message, body.stack)
    return AcceptedResponse()


@app.post("/projects/{project}/analysis/status", response_model=AcceptedResponse)
async def analysis_status(project: str, body: AnalysisStatusReport):
    _monitor(project).on_server_status(body.is_analyzing)
    return AcceptedResponse()


# =============================================================================
# Analysis results
# =============================================================================

@app.post("/projects/{project}/analysis/errors", response_model=AcceptedResponse)
async def analysis_errors(project: str, body: ErrorsReport):
    _monitor(project).on_errors_computed(body.path, [e.to_error() for e in body.errors])
    return AcceptedResponse()


@app.post("/projects/{project}/analysis/highlights", response_model=AcceptedResponse)
async def analysis_highlights(project: str, body: FileEvent):
    _monitor(project).on_highlights_computed(body.path)
    return AcceptedResponse()


@app.post("/projects/{project}/analysis/outline", response_model=AcceptedResponse)
async def analysis_outline(project: str, body: FileEvent):
    _monitor(project).on_outline_computed(body.path)
    return AcceptedResponse()


# =============================================================================
# Editor
# =============================================================================

@app.post("/projects/{project}/files/opened", response_model=AcceptedResponse)
async def file_opened(project: str, body: FileEvent):
    _monitor(project).on_file_opened(body.path)
    return AcceptedResponse()


@app.post("/projects/{project}/files/closed", response_model=AcceptedResponse)
async def file_closed(project: str, body: FileEvent):
    _monitor(project).on_file_closed(body.path)
    return AcceptedResponse()


@app.post("/projects/{project}/quick-fixes", response_model=QuickFixResponse)
async def quick_fix(project: str, body: QuickFixReport):
    matched = _monitor(project).on_quick_fix_invoked(body.path, body.line, body.label)
    return QuickFixResponse(matched_errors=matched)


@app.post("/projects/{project}/completions/{session_id}/started", response_model=AcceptedResponse)
async def completion_started(project: str, session_id: str, body: FileEvent):
    _monitor(project).on_lookup_started(LookupSession(session_id, body.path))
    return AcceptedResponse()


@app.post("/projects/{project}/completions/{session_id}/selected", response_model=SelectionResponse)
async def completion_selected(project: str, session_id: str, body: SelectionReport):
    session = LookupSession(session_id, body.file_path)
    reported = _monitor(project).on_selection_item(session, body.item, body.prefix_length)
    return SelectionResponse(reported=reported)


@app.post("/projects/{project}/completions/{session_id}/cancelled", response_model=SelectionResponse)
async def completion_cancelled(project: str, session_id: str, body: CancellationReport):
    session = LookupSession(session_id, body.file_path)
    reported = _monitor(project).on_selection_cancelled(session, body.explicit)
    return SelectionResponse(reported=reported)


@app.post("/projects/{project}/completions/timing", response_model=AcceptedResponse)
async def completion_timing(project: str, body: CompletionTimingReport):
    _monitor(project).log_e2e_completion(body.duration_ms, body.success)
    return AcceptedResponse()


# =============================================================================
# Diagnostics and lifecycle
# =============================================================================

@app.get("/projects/{project}/errors/counts", response_model=ErrorCountsResponse)
async def error_counts(project: str):
    monitor = _existing_monitor(project)
    counts = monitor.errors.aggregate_counts()
    return ErrorCountsResponse(
        project=project,
        counts={t.value: n for t, n in counts.items()},
        status=monitor.errors.status_counts(),
    )


@app.get("/projects/{project}/errors", response_model=ErrorsOnLineResponse)
async def errors_on_line(project: str, path: str = Query(...), line: int = Query(..., ge=0)):
    monitor = _existing_monitor(project)
    return ErrorsOnLineResponse(
        project=project,
        path=path,
        line=line,
        codes=monitor.errors.errors_on_line(path, line),
    )


@app.get("/projects/{project}/stats")
async def project_stats(project: str):
    return _existing_monitor(project).stats


@app.delete("/projects/{project}")
async def dispose_project(project: str):
    if not _registry:
        raise HTTPException(status_code=503, detail="Service not initialized")
    if not _registry.dispose(project):
        raise HTTPException(status_code=404, detail=f"Unknown project: {project}")
    return {"status": "disposed", "project": project}


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        projects=_registry.projects if _registry else [],
        telemetry=_emitter.stats if _emitter else {},
        batcher=_batcher.stats if _batcher else {},
    )


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Analysis Telemetry Service",
        "version": "0.1.0",
        "endpoints": {
            "/projects/{project}/protocol/request": "POST - Outgoing protocol request",
            "/projects/{project}/protocol/response": "POST - Incoming protocol response or notification",
            "/projects/{project}/analysis/request-error": "POST - Protocol request failed",
            "/projects/{project}/analysis/server-error": "POST - Analysis server error",
            "/projects/{project}/analysis/status": "POST - Analysis started or finished",
            "/projects/{project}/analysis/errors": "POST - Full error list for a file",
            "/projects/{project}/analysis/highlights": "POST - Highlights computed for a file",
            "/projects/{project}/analysis/outline": "POST - Outline computed for a file",
            "/projects/{project}/files/opened": "POST - File opened in the editor",
            "/projects/{project}/files/closed": "POST - File closed in the editor",
            "/projects/{project}/quick-fixes": "POST - Quick fix invoked",
            "/projects/{project}/completions/{session_id}/started": "POST - Completion lookup started",
            "/projects/{project}/completions/{session_id}/selected": "POST - Completion accepted",
            "/projects/{project}/completions/{session_id}/cancelled": "POST - Completion cancelled",
            "/projects/{project}/completions/timing": "POST - End-to-end completion time",
            "/projects/{project}/errors/counts": "GET - Aggregate error counts",
            "/projects/{project}/errors": "GET - Error codes on a line (?path=&line=)",
            "/projects/{project}/stats": "GET - Correlation state sizes",
            "/projects/{project}": "DELETE - Dispose a project's monitor",
            "/health": "Health check",
        },
    }


def run():
    """Run the service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    uvicorn.run(
        "analysis_telemetry.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
