"""
SEADOSE Configuration Module.

Centralized configuration management using environment variables.
Supports .env files for local development.

Usage:
    from src.config import settings

    print(settings.rao_dir)
    print(settings.positions_m)
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Tuple
import logging

from dotenv import load_dotenv

# Load .env file if present
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def get_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def get_float_list(key: str, default: str) -> List[float]:
    """Get list of floats from comma-separated environment variable."""
    value = os.getenv(key, default)
    items = [item.strip() for item in value.split(",") if item.strip()]
    try:
        return [float(item) for item in items]
    except ValueError:
        logging.warning(f"Invalid number list in {key}={value!r}, using {default!r}")
        return [float(item) for item in default.split(",")]


@dataclass
class SpectralSettings:
    """
    Numerical parameters of the JONSWAP synthesis.

    The frequency grid runs from grid_start to grid_stop in grid_step
    increments (rad/s).
    """
    gamma: float = field(default_factory=lambda: get_float("SEADOSE_GAMMA", 3.3))
    gravity: float = 9.81
    alpha_initial: float = field(default_factory=lambda: get_float("SEADOSE_ALPHA_INITIAL", 0.0081))
    alpha_max_iter: int = field(default_factory=lambda: get_int("SEADOSE_ALPHA_MAX_ITER", 50))
    alpha_tolerance: float = field(default_factory=lambda: get_float("SEADOSE_ALPHA_TOLERANCE", 1e-3))
    grid_step: float = 0.01
    grid_points: int = 600  # 0.01 .. 6.00 rad/s


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Response tables
    rao_dir: str = field(default_factory=lambda: os.getenv("SEADOSE_RAO_DIR", "data/rao"))
    speeds_kts: List[float] = field(
        default_factory=lambda: get_float_list("SEADOSE_SPEEDS_KTS", "0,4,8,10,12,14,16")
    )
    headings_deg: List[float] = field(
        default_factory=lambda: get_float_list("SEADOSE_HEADINGS_DEG", "0,30,60,90,120,150,180")
    )

    # Hull positions (m from midships, positive forward)
    positions_m: List[float] = field(
        default_factory=lambda: get_float_list("SEADOSE_POSITIONS_M", "-50,-30,-10,0,10,30,50")
    )
    reference_position_m: float = field(
        default_factory=lambda: get_float("SEADOSE_REFERENCE_POSITION_M", 0.0)
    )

    # Comfort thresholds (MSDV, m/s^1.5)
    msdv_caution: float = field(default_factory=lambda: get_float("SEADOSE_MSDV_CAUTION", 0.5))
    msdv_warning: float = field(default_factory=lambda: get_float("SEADOSE_MSDV_WARNING", 1.0))

    spectral: SpectralSettings = field(default_factory=SpectralSettings)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.speeds_kts:
            logging.warning("No supported speeds configured, using 0 knots only")
            self.speeds_kts = [0.0]
        if not self.headings_deg:
            logging.warning("No heading buckets configured, using 0-180 in 30 deg steps")
            self.headings_deg = [0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0]
        if self.msdv_warning < self.msdv_caution:
            logging.warning(
                f"MSDV warning threshold {self.msdv_warning} below caution "
                f"threshold {self.msdv_caution}, swapping"
            )
            self.msdv_caution, self.msdv_warning = self.msdv_warning, self.msdv_caution

    @property
    def speed_buckets(self) -> Tuple[float, ...]:
        return tuple(sorted(self.speeds_kts))

    @property
    def heading_buckets(self) -> Tuple[float, ...]:
        return tuple(sorted(self.headings_deg))

    def configure_logging(self):
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=self.log_format)


# Singleton instance
settings = Settings()


# Convenience function for testing
def get_settings() -> Settings:
    """Get the settings instance (useful for dependency injection)."""
    return settings
