"""Spectrum and motion-assessment API schemas.

Sea-state and vessel values are only type-checked here; range checks
belong to the pipeline so the API reports the same errors as the CLI.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.spectral import VesselState, WaveState


class WaveStateModel(BaseModel):
    significant_height_m: float = Field(..., description="Significant wave height Hs (m)")
    peak_period_s: float = Field(..., description="Peak period Tp (s)")
    direction_deg: Optional[float] = Field(None, description="Mean wave direction, coming from (deg)")
    timestamp: Optional[datetime] = None

    def to_state(self) -> WaveState:
        return WaveState(
            significant_height_m=self.significant_height_m,
            peak_period_s=self.peak_period_s,
            direction_deg=self.direction_deg,
            timestamp=self.timestamp,
        )


class VesselStateModel(BaseModel):
    speed_kts: float = Field(..., description="Speed through water (kn)")
    heading_deg: float = Field(..., description="Heading relative to waves (deg)")
    timestamp: Optional[datetime] = None

    def to_state(self) -> VesselState:
        return VesselState(
            speed_kts=self.speed_kts,
            heading_deg=self.heading_deg,
            timestamp=self.timestamp,
        )


class SpectrumRequest(BaseModel):
    """JONSWAP spectrum request."""
    significant_height_m: float = Field(..., description="Hs (m)")
    peak_period_s: float = Field(..., description="Tp (s)")
    strict: bool = Field(False, description="Fail instead of degrading when alpha does not converge")


class SpectrumResponse(BaseModel):
    significant_height_m: float
    peak_period_s: float
    alpha: float
    converged: bool
    iterations: int
    significant_height_check_m: float
    frequencies: List[float]
    density: List[float]


class AssessRequest(BaseModel):
    """Synchronous motion-sickness assessment for one observation."""
    wave: WaveStateModel
    vessel: VesselStateModel
    positions_m: Optional[List[float]] = Field(
        None, description="Longitudinal positions from midships (m); defaults to configured set"
    )
    include_series: bool = Field(False, description="Include weighted and vertical PSD series")


class ComfortModel(BaseModel):
    status: str
    msdv: Optional[float]
    position_m: float
    recommendation: str
    recommended_speed_kts: Optional[float]
    heading_advice: Optional[str]
    outlook: str
    warnings: List[str] = []


class FaultModel(BaseModel):
    stage: str
    bins: List[int]


class AssessResponse(BaseModel):
    computed_at: datetime
    speed_bucket_kts: float
    heading_bucket_deg: float
    alpha: float
    calibration_converged: bool
    msdv: Dict[str, Optional[float]]
    comfort: ComfortModel
    faults: List[FaultModel] = []
    frequencies: Optional[List[float]] = None
    weighted_psd: Optional[Dict[str, List[float]]] = None
    vertical_psd: Optional[Dict[str, List[float]]] = None


class FeedResponse(BaseModel):
    accepted: bool
    generation: int
    runner_running: bool
