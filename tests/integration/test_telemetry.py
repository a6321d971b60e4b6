"""Tests for the telemetry pipeline: events, emitter, batcher, sinks."""

import asyncio
import json
import threading

import pytest

from analysis_telemetry.telemetry.batcher import TelemetryBatcher, create_batched_consumer
from analysis_telemetry.telemetry.emitter import TelemetryEmitter
from analysis_telemetry.telemetry.events import ROUND_TRIP_TIME, EventKind, TelemetryEvent
from analysis_telemetry.telemetry.reporter import TelemetryReporter
from analysis_telemetry.telemetry.sinks.console import ConsoleSink
from analysis_telemetry.telemetry.sinks.file import FileSink


@pytest.fixture
def event():
    return TelemetryEvent.timing(ROUND_TRIP_TIME, "analysis.getHover", 42)


class TestTelemetryEvent:
    def test_factories(self):
        assert TelemetryEvent.event("quickFix", "fix", 2).kind == EventKind.EVENT
        assert TelemetryEvent.tagged("analysisServerLog", "x", "3.4.0").tag == "3.4.0"

        exc = TelemetryEvent.exception("R boom", fatal=True)
        assert exc.kind == EventKind.EXCEPTION
        assert exc.fatal

    def test_to_dict(self, event):
        d = event.to_dict()
        assert d["kind"] == "timing"
        assert d["category"] == ROUND_TRIP_TIME
        assert d["label"] == "analysis.getHover"
        assert d["value"] == 42
        assert d["timestamp"]


class TestTelemetryReporter:
    def test_disabled_reporter_sends_nothing(self):
        sent = []

        class Emitter:
            def emit(self, event):
                sent.append(event)
                return True

        TelemetryReporter(emitter=Emitter(), enabled=False).emit("c", "l", 1)
        assert sent == []

    def test_emitter_failure_is_swallowed(self):
        class Broken:
            def emit(self, event):
                raise RuntimeError("sink down")

        reporter = TelemetryReporter(emitter=Broken())
        reporter.emit_timing(ROUND_TRIP_TIME, "m", 5)

        assert reporter.failures == 1

    def test_failures_counted_across_threads(self):
        class Broken:
            def emit(self, event):
                raise RuntimeError("sink down")

        reporter = TelemetryReporter(emitter=Broken())
        barrier = threading.Barrier(8)

        def report_many():
            barrier.wait()
            for _ in range(100):
                reporter.emit("c", "l", 1)

        threads = [threading.Thread(target=report_many) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert reporter.failures == 800

    def test_negative_timing_is_clamped(self):
        sent = []

        class Emitter:
            def emit(self, event):
                sent.append(event)
                return True

        TelemetryReporter(emitter=Emitter()).emit_timing(ROUND_TRIP_TIME, "m", -3)
        assert sent[0].value == 0


class TestTelemetryEmitter:
    @pytest.mark.asyncio
    async def test_emit(self, event):
        emitter = TelemetryEmitter()
        await emitter.start()

        received = []
        emitter.add_consumer(received.append)

        assert emitter.emit(event)
        assert emitter.stats["emitted"] == 1

        await emitter.stop()
        assert received == [event]

    def test_emit_before_start_drops(self, event):
        emitter = TelemetryEmitter()

        assert not emitter.emit(event)
        assert emitter.stats["dropped"] == 1

    @pytest.mark.asyncio
    async def test_queue_overflow(self, event):
        emitter = TelemetryEmitter(max_queue_size=2)
        await emitter.start()

        assert emitter.emit(event)
        assert emitter.emit(event)
        assert not emitter.emit(event)
        assert emitter.stats["dropped"] == 1

        await emitter.stop()

    @pytest.mark.asyncio
    async def test_emit_from_worker_thread(self, event):
        emitter = TelemetryEmitter()
        await emitter.start()
        received = []
        emitter.add_consumer(received.append)

        results = []
        thread = threading.Thread(target=lambda: results.append(emitter.emit(event)))
        thread.start()
        thread.join()

        # Let the loop run the handed-off put
        await asyncio.sleep(0)
        assert results == [True]
        assert emitter.queue_depth == 1

        await emitter.stop()
        assert received == [event]

    @pytest.mark.asyncio
    async def test_process_loop_delivers_and_survives_consumer_errors(self, event):
        emitter = TelemetryEmitter()
        await emitter.start()

        received = []

        def broken(e):
            raise RuntimeError("bad consumer")

        emitter.add_consumer(broken)
        emitter.add_consumer(received.append)

        task = asyncio.create_task(emitter.process_loop())
        emitter.emit(event)
        for _ in range(10):
            if received:
                break
            await asyncio.sleep(0.01)

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await emitter.stop()

        assert received == [event]
        assert emitter.stats["errors"] == 1


class TestTelemetryBatcher:
    @pytest.mark.asyncio
    async def test_batch_on_size(self, event):
        batches = []

        async def sink(events):
            batches.append(events)

        batcher = TelemetryBatcher(batch_size=3, sink=sink)

        await batcher.add(event)
        await batcher.add(event)
        await batcher.add(event)

        assert len(batches) == 1
        assert len(batches[0]) == 3

    @pytest.mark.asyncio
    async def test_flush(self, event):
        batches = []

        async def sink(events):
            batches.append(events)

        batcher = TelemetryBatcher(batch_size=100, sink=sink)

        await batcher.add(event)
        assert len(batches) == 0

        await batcher.flush()
        assert len(batches) == 1
        assert len(batches[0]) == 1

    @pytest.mark.asyncio
    async def test_failed_batch_is_dropped_not_retried(self, event):
        calls = []

        async def sink(events):
            calls.append(len(events))
            raise ConnectionError("collector unavailable")

        batcher = TelemetryBatcher(batch_size=2, sink=sink)
        await batcher.add(event)
        await batcher.add(event)
        await batcher.flush()

        assert calls == [2]
        assert batcher.stats["flush_errors"] == 1
        assert batcher.stats["events_dropped"] == 2
        assert batcher.buffer_size == 0

    @pytest.mark.asyncio
    async def test_batched_consumer(self, event):
        batches = []

        async def sink(events):
            batches.append(events)

        batcher = TelemetryBatcher(batch_size=1, sink=sink)
        consumer = create_batched_consumer(batcher)
        await consumer(event)

        assert batches == [[event]]


class TestSinks:
    @pytest.mark.asyncio
    async def test_file_sink_writes_jsonl(self, tmp_path, event):
        path = tmp_path / "out" / "telemetry.jsonl"
        sink = FileSink(path=str(path))

        await sink.send([event, TelemetryEvent.exception("@ crash", fatal=True)])
        await sink.stop()

        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["kind"] for line in lines] == ["timing", "exception"]
        assert lines[1]["fatal"] is True

    @pytest.mark.asyncio
    async def test_file_sink_rotates(self, tmp_path, event):
        path = tmp_path / "telemetry.jsonl"
        sink = FileSink(path=str(path), max_bytes=10)

        await sink.send([event])
        await sink.send([event])
        await sink.stop()

        assert (tmp_path / "telemetry.jsonl.1").exists()
        assert path.read_text() == ""

    @pytest.mark.asyncio
    async def test_console_sink_compact(self, capsys, event):
        await ConsoleSink().send([event])

        out = capsys.readouterr().out
        assert out.startswith("[TELEMETRY] ")
        assert "timing roundTripTime 'analysis.getHover' 42ms" in out
