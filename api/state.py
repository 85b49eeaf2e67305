"""
Thread-safe state management for the SEADOSE API.

Holds the pipeline, its coalescing runner and the comfort advisor behind a
singleton so that every request shares one response cache and one runner.
"""
import threading
import logging
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.config import Settings, get_settings
from src.spectral import (
    CoalescingRunner,
    ComfortAdvisor,
    ComfortLimits,
    MotionSicknessPipeline,
    ResponseLibrary,
    SpectrumSynthesizer,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineState:
    """
    Thread-safe container for the pipeline components.

    Uses a lock so that a rebuild (e.g. after a configuration change)
    swaps all related objects at once.
    """
    settings: Settings = field(default_factory=get_settings)
    strict_calibration: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    _library: Any = None
    _pipeline: Any = None
    _runner: Any = None
    _advisor: Any = None

    def __post_init__(self):
        """Build components from settings."""
        self._build()

    def _build(self):
        library = ResponseLibrary(
            rao_dir=self.settings.rao_dir,
            speeds_kts=self.settings.speed_buckets,
            headings_deg=self.settings.heading_buckets,
        )
        pipeline = MotionSicknessPipeline(
            synthesizer=SpectrumSynthesizer(self.settings.spectral),
            library=library,
            positions_m=self.settings.positions_m,
            strict_calibration=self.strict_calibration,
        )
        self._library = library
        self._pipeline = pipeline
        self._runner = CoalescingRunner(pipeline)
        self._advisor = ComfortAdvisor(
            ComfortLimits(
                msdv_caution=self.settings.msdv_caution,
                msdv_warning=self.settings.msdv_warning,
            ),
            reference_position_m=self.settings.reference_position_m,
        )

    @property
    def library(self) -> ResponseLibrary:
        """Get response library (thread-safe read)."""
        with self._lock:
            return self._library

    @property
    def pipeline(self) -> MotionSicknessPipeline:
        """Get pipeline (thread-safe read)."""
        with self._lock:
            return self._pipeline

    @property
    def runner(self) -> CoalescingRunner:
        """Get coalescing runner (thread-safe read)."""
        with self._lock:
            return self._runner

    @property
    def advisor(self) -> ComfortAdvisor:
        """Get comfort advisor (thread-safe read)."""
        with self._lock:
            return self._advisor

    def rebuild(self, settings: Optional[Settings] = None) -> None:
        """
        Rebuild all components atomically.

        The old runner is stopped; the caller starts the new one.
        """
        with self._lock:
            was_running = self._runner is not None and self._runner.is_running
            if was_running:
                self._runner.stop()
            if settings is not None:
                self.settings = settings
            self._build()
            logger.info(f"Pipeline rebuilt: RAO dir {self.settings.rao_dir}")


class ApplicationState:
    """
    Singleton application state manager.

    Centralizes all shared state with proper thread safety.
    Use get_app_state() to access the singleton instance.
    """

    _instance: Optional['ApplicationState'] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            with cls._lock:
                # Double-check locking
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize application state (only once)."""
        if self._initialized:
            return

        from api.config import settings as api_settings

        self._initialized = True
        self._pipeline_state = PipelineState(strict_calibration=api_settings.strict_calibration)
        self._startup_time = datetime.now(timezone.utc)

        logger.info("Application state initialized")

    @property
    def pipeline(self) -> PipelineState:
        """Get pipeline state manager."""
        return self._pipeline_state

    @property
    def uptime_seconds(self) -> float:
        """Get application uptime in seconds."""
        return (datetime.now(timezone.utc) - self._startup_time).total_seconds()

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on all components.

        Returns:
            Dict with health status of each component
        """
        runner = self._pipeline_state.runner
        missing = [
            str(path) for _, _, path, exists in self._pipeline_state.library.available_tables()
            if not exists
        ]
        return {
            'response_tables': 'healthy' if not missing else 'degraded',
            'missing_tables': missing,
            'runner': 'running' if runner.is_running else 'stopped',
            'uptime_seconds': self.uptime_seconds,
        }

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton (tests)."""
        with cls._lock:
            instance = cls._instance
            cls._instance = None
        if instance is not None and instance._initialized:
            instance._pipeline_state.runner.stop()


def get_app_state() -> ApplicationState:
    """
    Get the application state singleton.

    This is the preferred way to access shared state throughout the application.

    Returns:
        ApplicationState: The singleton application state instance
    """
    return ApplicationState()


def get_pipeline_state() -> PipelineState:
    """Get the pipeline state manager."""
    return get_app_state().pipeline
