"""
Pipeline diagnostics.

Stage timings, degradation counters and the latest calibration and dose
gauges for the motion-sickness pipeline. The summary is served by
GET /api/metrics.

Stages timed:
- jonswap_synthesis: one spectrum calibration and evaluation
- pipeline_run: one full observation through to MSDV

Degradations counted:
- calibration_nonconvergence: alpha did not settle within the iteration cap
- computation_faults: non-finite bins substituted or blank doses
- runs_superseded / runs_failed: coalescing runner outcomes

Usage:
    from src.metrics import metrics, timed

    @timed("pipeline_run")
    def run(wave, vessel):
        ...

    metrics.increment("computation_faults")
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEGRADATION_COUNTERS = (
    "calibration_nonconvergence",
    "computation_faults",
    "runs_superseded",
    "runs_failed",
)

# Warn above these durations (ms); a run on the 600-point grid takes a few ms
SLOW_STAGE_MS = {
    "jonswap_synthesis": 50.0,
    "pipeline_run": 250.0,
}
DEFAULT_SLOW_MS = 250.0


@dataclass
class StageTiming:
    """Running totals for one pipeline stage."""
    count: int = 0
    total_ms: float = 0.0
    last_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def add(self, elapsed_ms: float):
        self.count += 1
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 3),
            "last_ms": round(self.last_ms, 3),
            "max_ms": round(self.max_ms, 3),
        }


class PipelineMetrics:
    """Thread-safe collector shared by every pipeline component."""

    def __init__(self, slow_thresholds_ms: Optional[Dict[str, float]] = None):
        self.slow_thresholds_ms = dict(SLOW_STAGE_MS if slow_thresholds_ms is None else slow_thresholds_ms)
        self._timings: Dict[str, StageTiming] = {}
        self._counters: Dict[str, int] = {}
        self._gauges: Dict[str, float] = {}
        self._lock = Lock()
        self._start_time = datetime.now()

    @contextmanager
    def timer(self, stage: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(stage, (time.perf_counter() - start) * 1000)

    def record(self, stage: str, elapsed_ms: float):
        """Add one duration to a stage, warning if it ran slow."""
        with self._lock:
            self._timings.setdefault(stage, StageTiming()).add(elapsed_ms)

        threshold = self.slow_thresholds_ms.get(stage, DEFAULT_SLOW_MS)
        if elapsed_ms > threshold:
            logger.warning(f"Slow stage: {stage} took {elapsed_ms:.1f}ms (threshold: {threshold}ms)")

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def set_gauge(self, name: str, value: float):
        with self._lock:
            self._gauges[name] = value

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def get_gauge(self, name: str) -> float:
        with self._lock:
            return self._gauges.get(name, 0.0)

    def get_timing(self, stage: str) -> Optional[StageTiming]:
        with self._lock:
            return self._timings.get(stage)

    def degradation(self) -> Dict[str, int]:
        """Every degradation counter, zero when it never fired."""
        with self._lock:
            return {name: self._counters.get(name, 0) for name in DEGRADATION_COUNTERS}

    def get_summary(self) -> dict:
        degradation = self.degradation()
        with self._lock:
            return {
                "uptime_seconds": round((datetime.now() - self._start_time).total_seconds(), 1),
                "timings": {stage: timing.to_dict() for stage, timing in self._timings.items()},
                "counters": dict(self._counters),
                "degradation": degradation,
                "gauges": {name: round(value, 6) for name, value in self._gauges.items()},
            }

    def reset(self):
        with self._lock:
            self._timings.clear()
            self._counters.clear()
            self._gauges.clear()
            self._start_time = datetime.now()


metrics = PipelineMetrics()


def timed(stage: str):
    """Time every call of the decorated function as `stage`."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            with metrics.timer(stage):
                return func(*args, **kwargs)
        return wrapper
    return decorator
