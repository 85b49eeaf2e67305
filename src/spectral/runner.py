"""
Coalescing pipeline runner.

Observations may arrive faster than the pipeline runs. The runner keeps
only the newest unstarted observation; older ones are dropped, and a run
whose input was superseded while in flight has its result discarded. The
last good result stays available until a newer run succeeds.

    submit(obs1) submit(obs2) submit(obs3)
        │            │  (drops obs1 if not started)
        └────────────┴──> worker ──> run(obs3) ──> latest_result
"""

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from src.metrics import metrics
from src.spectral.errors import SpectralError
from src.spectral.pipeline import MotionSicknessPipeline, PipelineResult
from src.spectral.sea_state import VesselState, WaveState

logger = logging.getLogger(__name__)

Observation = Tuple[int, WaveState, VesselState]


class CoalescingRunner:
    """
    Latest-wins executor for a MotionSicknessPipeline.

    Usage:
        runner = CoalescingRunner(pipeline)
        runner.start()
        runner.submit(wave, vessel)
        runner.wait_idle(timeout=5.0)
        result = runner.latest_result
        runner.stop()

    Without a worker thread, call run_once() after submit() to drain
    synchronously.
    """

    def __init__(
        self,
        pipeline: MotionSicknessPipeline,
        on_result: Optional[Callable[[PipelineResult], None]] = None,
    ):
        self.pipeline = pipeline
        self._on_result = on_result

        self._cond = threading.Condition()
        self._generation = 0
        self._pending: Optional[Observation] = None
        self._in_flight = False
        self._latest: Optional[PipelineResult] = None
        self._last_error: Optional[Exception] = None

        self._running = False
        self._thread: Optional[threading.Thread] = None

    def submit(self, wave: WaveState, vessel: VesselState) -> int:
        """
        Queue an observation, replacing any not-yet-started one.

        Returns:
            Generation number of the submitted observation
        """
        with self._cond:
            self._generation += 1
            if self._pending is not None:
                metrics.increment("runs_superseded")
                logger.debug(f"Dropping unstarted observation #{self._pending[0]}")
            self._pending = (self._generation, wave, vessel)
            self._cond.notify_all()
            return self._generation

    def start(self):
        """Start the background worker."""
        with self._cond:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self._worker_loop, name="seadose-runner", daemon=True)
        self._thread.start()
        logger.info("Pipeline runner started")

    def stop(self, timeout: float = 2.0):
        """Stop the background worker, letting an in-flight run finish."""
        with self._cond:
            self._running = False
            self._cond.notify_all()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Pipeline runner stopped")

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def latest_result(self) -> Optional[PipelineResult]:
        """Last successful, non-superseded result."""
        with self._cond:
            return self._latest

    @property
    def last_error(self) -> Optional[Exception]:
        """Error from the most recent failed run, cleared by the next success."""
        with self._cond:
            return self._last_error

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending or in flight. False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._pending is None and not self._in_flight, timeout
            )

    def run_once(self) -> Optional[PipelineResult]:
        """Drain pending observations on the calling thread."""
        while True:
            item = self._take()
            if item is None:
                break
            self._execute(item)
        return self.latest_result

    def get_stats(self) -> Dict:
        with self._cond:
            return {
                "running": self._running,
                "generation": self._generation,
                "pending": self._pending is not None,
                "in_flight": self._in_flight,
                "has_result": self._latest is not None,
                "last_error": str(self._last_error) if self._last_error else None,
            }

    def _take(self) -> Optional[Observation]:
        with self._cond:
            item = self._pending
            if item is not None:
                self._pending = None
                self._in_flight = True
            return item

    def _execute(self, item: Observation):
        generation, wave, vessel = item
        try:
            result = self.pipeline.run(wave, vessel)
        except SpectralError as e:
            metrics.increment("runs_failed")
            logger.error(f"Pipeline run #{generation} failed: {e}")
            with self._cond:
                self._last_error = e
                self._in_flight = False
                self._cond.notify_all()
            return
        except Exception as e:
            metrics.increment("runs_failed")
            logger.exception(f"Unexpected error in pipeline run #{generation}")
            with self._cond:
                self._last_error = e
                self._in_flight = False
                self._cond.notify_all()
            return

        with self._cond:
            superseded = generation != self._generation
            if superseded:
                metrics.increment("runs_superseded")
            else:
                self._latest = result
                self._last_error = None
            self._in_flight = False
            self._cond.notify_all()

        if superseded:
            logger.debug(f"Discarding result of superseded run #{generation}")
        elif self._on_result is not None:
            try:
                self._on_result(result)
            except Exception:
                logger.exception("Result callback failed")

    def _worker_loop(self):
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or not self._running)
                if not self._running:
                    break
            item = self._take()
            if item is not None:
                self._execute(item)
