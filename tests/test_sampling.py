"""Tests for deterministic computed-error sampling."""

import math
import threading

import pytest

from analysis_telemetry.correlation.errors import AnalysisError, ErrorType
from analysis_telemetry.correlation.sampling import SampledEventEmitter
from analysis_telemetry.telemetry.events import COMPUTED_ERROR


ERROR = AnalysisError(code="dead_code", type=ErrorType.HINT, line=1)


class TestSampledEventEmitter:
    def test_first_call_is_sampled(self, reporter, recorder):
        sampler = SampledEventEmitter(reporter=reporter, sample_rate=100)

        assert sampler.maybe_emit(ERROR)
        event = recorder.events[0]
        assert event.category == COMPUTED_ERROR
        assert event.label == "dead_code"

    def test_value_is_wall_clock_millis(self, reporter, recorder):
        sampler = SampledEventEmitter(reporter=reporter, wall_clock=lambda: 1700000000.5)
        sampler.maybe_emit(ERROR)

        assert recorder.events[0].value == 1700000000500

    @pytest.mark.parametrize("calls", [1, 99, 100, 101, 250])
    def test_emits_ceil_k_over_n(self, reporter, recorder, calls):
        sampler = SampledEventEmitter(reporter=reporter, sample_rate=100)
        for _ in range(calls):
            sampler.maybe_emit(ERROR)

        assert len(recorder.events) == math.ceil(calls / 100)

    def test_every_nth_call_is_sampled(self, reporter):
        sampler = SampledEventEmitter(reporter=reporter, sample_rate=3)
        sampled = [sampler.maybe_emit(ERROR) for _ in range(7)]

        assert sampled == [True, False, False, True, False, False, True]

    def test_none_is_not_counted(self, reporter, recorder):
        sampler = SampledEventEmitter(reporter=reporter, sample_rate=2)
        sampler.maybe_emit(None)

        assert sampler.count == 0
        assert recorder.events == []

    def test_concurrent_callers_share_one_counter(self, reporter, recorder):
        sampler = SampledEventEmitter(reporter=reporter, sample_rate=10)

        def worker():
            for _ in range(250):
                sampler.maybe_emit(ERROR)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sampler.count == 1000
        assert len(recorder.events) == 100

    def test_rate_must_be_positive(self, reporter):
        with pytest.raises(ValueError):
            SampledEventEmitter(reporter=reporter, sample_rate=0)
