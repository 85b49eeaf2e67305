"""Per-cycle observations supplied by the sensor feed."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.spectral.errors import InputValidationError


@dataclass(frozen=True)
class WaveState:
    """Sea state for one observation cycle."""
    significant_height_m: float  # Hs
    peak_period_s: float         # Tp
    direction_deg: Optional[float] = None  # Mean wave direction (from)
    timestamp: Optional[datetime] = None

    def validate(self) -> "WaveState":
        """Raise InputValidationError unless Hs and Tp are finite and positive."""
        validate_sea_state(self.significant_height_m, self.peak_period_s)
        return self

    @property
    def peak_frequency_rad(self) -> float:
        """Peak angular frequency wp = 2*pi / Tp (rad/s)."""
        return 2.0 * math.pi / self.peak_period_s


@dataclass(frozen=True)
class VesselState:
    """Vessel speed and heading for one observation cycle."""
    speed_kts: float
    heading_deg: float
    timestamp: Optional[datetime] = None

    def validate(self) -> "VesselState":
        if not math.isfinite(self.speed_kts) or self.speed_kts < 0:
            raise InputValidationError(f"speed_kts must be finite and >= 0, got {self.speed_kts}")
        if not math.isfinite(self.heading_deg):
            raise InputValidationError(f"heading_deg must be finite, got {self.heading_deg}")
        return self


def validate_sea_state(Hs: float, Tp: float) -> None:
    """Reject non-positive or non-finite significant wave height / peak period."""
    if not math.isfinite(Hs) or Hs <= 0:
        raise InputValidationError(f"Significant wave height must be > 0, got {Hs}")
    if not math.isfinite(Tp) or Tp <= 0:
        raise InputValidationError(f"Peak period must be > 0, got {Tp}")
