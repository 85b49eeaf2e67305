"""
Unit tests for pipeline diagnostics.

Covers the pipeline_run timer, the degradation counters, the alpha and
MSDV gauges and the slow-stage warning.
"""

import logging

import pytest

from src.metrics import DEGRADATION_COUNTERS, PipelineMetrics, metrics, timed
from src.spectral import SpectrumSynthesizer, VesselState, WaveState


class TestStageTimers:

    def test_pipeline_run_timed(self, pipeline):
        pipeline.run(WaveState(2.0, 8.0), VesselState(12.0, 0.0))
        pipeline.run(WaveState(2.0, 8.0), VesselState(4.0, 90.0))

        timing = metrics.get_timing("pipeline_run")
        assert timing.count == 2
        assert timing.max_ms >= timing.last_ms > 0.0
        assert timing.avg_ms == pytest.approx(timing.total_ms / 2)

    def test_timed_records_failed_calls(self):
        @timed("pipeline_run")
        def failing_run():
            raise ValueError("bad observation")

        with pytest.raises(ValueError):
            failing_run()

        assert metrics.get_timing("pipeline_run").count == 1

    def test_slow_stage_warns(self, caplog):
        collector = PipelineMetrics()
        with caplog.at_level(logging.WARNING, logger="src.metrics"):
            collector.record("pipeline_run", 400.0)
            collector.record("jonswap_synthesis", 20.0)

        assert len(caplog.records) == 1
        assert "Slow stage: pipeline_run took 400.0ms" in caplog.text

    def test_custom_threshold(self, caplog):
        collector = PipelineMetrics(slow_thresholds_ms={"jonswap_synthesis": 5.0})
        with caplog.at_level(logging.WARNING, logger="src.metrics"):
            collector.record("jonswap_synthesis", 20.0)

        assert "jonswap_synthesis" in caplog.text


class TestDegradation:

    def test_all_counters_reported_at_zero(self):
        assert PipelineMetrics().degradation() == {name: 0 for name in DEGRADATION_COUNTERS}

    def test_nonconvergence_counted(self):
        SpectrumSynthesizer().synthesize(1.0, 0.1)

        summary = metrics.get_summary()
        assert summary["degradation"]["calibration_nonconvergence"] == 1
        assert summary["degradation"]["computation_faults"] == 0


class TestGauges:

    def test_alpha_and_midships_msdv(self, pipeline):
        result = pipeline.run(WaveState(2.0, 8.0), VesselState(12.0, 0.0))

        assert metrics.get_gauge("jonswap_alpha") == pytest.approx(result.alpha)
        assert metrics.get_gauge("msdv_midships") == pytest.approx(result.msdv[0.0])

    def test_summary_rounds_gauges(self):
        metrics.set_gauge("jonswap_alpha", 0.00812345678)
        assert metrics.get_summary()["gauges"]["jonswap_alpha"] == 0.008123

    def test_reset(self, pipeline):
        pipeline.run(WaveState(2.0, 8.0), VesselState(12.0, 0.0))
        metrics.reset()

        summary = metrics.get_summary()
        assert summary["timings"] == {}
        assert summary["gauges"] == {}
        assert metrics.get_counter("pipeline_runs_processed") == 0
