"""
Crew comfort advisory.

Turns the MSDV at a reference hull position into a bridge-facing comfort
status with speed and heading recommendations.

References:
- ISO 2631-1:1997 Annex D "Guide to the effects of vibration on the
  incidence of motion sickness"
- O'Hanlon & McCauley (1974) "Motion sickness incidence as a function of
  the frequency and acceleration of vertical sinusoidal motion"
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional

from src.spectral.rao import fold_heading
from src.spectral.sea_state import VesselState, WaveState

logger = logging.getLogger(__name__)


class ComfortStatus(Enum):
    """Comfort assessment result."""
    NORMAL = "normal"
    CAUTION = "caution"
    WARNING = "warning"
    UNKNOWN = "unknown"


@dataclass
class ComfortLimits:
    """
    MSDV thresholds (m/s^1.5) and recommendation parameters.

    Defaults reflect bridge practice for a general cargo crew; passenger
    vessels typically lower both thresholds.
    """
    msdv_caution: float = 0.5
    msdv_warning: float = 1.0

    # ── Speed reduction ──
    speed_reduction_msdv: float = 0.8   # Recommend slowing above this MSDV
    speed_reduction_factor: float = 0.8
    min_recommended_speed_kts: float = 8.0

    # ── Heading ──
    head_sea_sector_deg: float = 30.0   # Relative heading within this of 180 deg is head seas
    heading_alteration_deg: float = 30.0

    # ── Sea-state outlook (Hs, m) ──
    rough_hs_m: float = 3.0
    calm_hs_m: float = 1.5


@dataclass
class ComfortAssessment:
    """Comfort assessment at the reference position."""
    status: ComfortStatus
    msdv: Optional[float]
    position_m: float
    recommendation: str
    recommended_speed_kts: Optional[float]
    heading_advice: Optional[str]
    outlook: str
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "msdv": self.msdv,
            "position_m": self.position_m,
            "recommendation": self.recommendation,
            "recommended_speed_kts": self.recommended_speed_kts,
            "heading_advice": self.heading_advice,
            "outlook": self.outlook,
            "warnings": list(self.warnings),
        }


RECOMMENDATIONS = {
    ComfortStatus.NORMAL: "Comfortable conditions for crew operations.",
    ComfortStatus.CAUTION: "Elevated motion levels. Monitor crew comfort.",
    ComfortStatus.WARNING: "High motion levels. Consider speed/heading adjustment.",
    ComfortStatus.UNKNOWN: "Motion dose unavailable for this cycle.",
}


class ComfortAdvisor:
    """
    Comfort status and navigation recommendations from an MSDV map.

    Usage:
        advisor = ComfortAdvisor(ComfortLimits(msdv_caution=0.4))
        assessment = advisor.assess(result.msdv, wave, vessel)
    """

    def __init__(self, limits: Optional[ComfortLimits] = None, reference_position_m: float = 0.0):
        self.limits = limits or ComfortLimits()
        self.reference_position_m = reference_position_m

    def classify(self, msdv: Optional[float]) -> ComfortStatus:
        if msdv is None:
            return ComfortStatus.UNKNOWN
        if msdv < self.limits.msdv_caution:
            return ComfortStatus.NORMAL
        if msdv < self.limits.msdv_warning:
            return ComfortStatus.CAUTION
        return ComfortStatus.WARNING

    def assess(
        self,
        msdv_by_position: Mapping[float, Optional[float]],
        wave: WaveState,
        vessel: VesselState,
    ) -> ComfortAssessment:
        """
        Assess comfort at the reference position.

        A reference position missing from the map is treated like a blank
        dose: status UNKNOWN, no speed advice.
        """
        warnings = []
        position = float(self.reference_position_m)
        if position not in msdv_by_position:
            warnings.append(f"Reference position {position:g} m was not evaluated")
        msdv = msdv_by_position.get(position)

        status = self.classify(msdv)
        if status == ComfortStatus.UNKNOWN:
            logger.warning(f"No MSDV at reference position {position:g} m")

        return ComfortAssessment(
            status=status,
            msdv=msdv,
            position_m=position,
            recommendation=RECOMMENDATIONS[status],
            recommended_speed_kts=self._recommend_speed(msdv, vessel.speed_kts),
            heading_advice=self._heading_advice(vessel.heading_deg),
            outlook=self._outlook(wave.significant_height_m),
            warnings=warnings,
        )

    def _recommend_speed(self, msdv: Optional[float], speed_kts: float) -> Optional[float]:
        """Reduced speed, or None to maintain current speed."""
        if msdv is None or msdv <= self.limits.speed_reduction_msdv:
            return None
        return max(
            speed_kts * self.limits.speed_reduction_factor,
            self.limits.min_recommended_speed_kts,
        )

    def _heading_advice(self, heading_deg: float) -> Optional[str]:
        """
        Advise a heading alteration in head seas, None if current heading is fine.

        heading_deg is relative to the waves, 180 deg being head seas; port
        and starboard fold together as in the response tables.
        """
        off_head_seas = 180.0 - fold_heading(heading_deg)
        if off_head_seas < self.limits.head_sea_sector_deg:
            return f"Consider altering heading ±{self.limits.heading_alteration_deg:.0f}° off head seas"
        return None

    def _outlook(self, hs_m: float) -> str:
        if hs_m > self.limits.rough_hs_m:
            return "Rough seas expected to continue. Monitor for comfort."
        if hs_m < self.limits.calm_hs_m:
            return "Calm seas. Good conditions for operations."
        return "Moderate seas. Normal operations possible."
