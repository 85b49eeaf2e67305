"""
Motion-sickness pipeline.

One run takes a (WaveState, VesselState) observation through:

    WaveState ──> SpectrumSynthesizer ──┐
                                        ├──> MotionPSDEngine ──> DoseIntegrator ──> MSDV
    VesselState ──> ResponseLibrary ────┘

Collaborators are passed in explicitly; the only state held between runs
is the last synthesized spectrum (reused while Hs/Tp are unchanged) and
the response cache inside the library.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from src.metrics import metrics, timed
from src.spectral.dose import DoseIntegrator, MSDVResult
from src.spectral.errors import ComputationFault
from src.spectral.jonswap import SpectrumCurve, SpectrumSynthesizer
from src.spectral.psd import MotionPSDEngine, PSDTriplet, validate_grid
from src.spectral.rao import Dof, ResponseFunction, ResponseLibrary, interpolate
from src.spectral.sea_state import VesselState, WaveState

logger = logging.getLogger(__name__)

DEFAULT_POSITIONS_M = (-50.0, -30.0, -10.0, 0.0, 10.0, 30.0, 50.0)


def position_key(position: float) -> str:
    """JSON key for a hull position: shortest exact repr, -0.0 written as 0.0."""
    return repr(float(position) + 0.0)


@dataclass
class PipelineResult:
    """Output of one pipeline run."""
    wave: WaveState
    vessel: VesselState
    speed_bucket_kts: float
    heading_bucket_deg: float
    alpha: float
    calibration_converged: bool
    frequencies: np.ndarray
    weighted: PSDTriplet
    vertical: Dict[float, np.ndarray]
    msdv: MSDVResult
    faults: List[ComputationFault] = field(default_factory=list)
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def positions(self) -> List[float]:
        return sorted(self.msdv)

    def peak_msdv(self) -> Tuple[Optional[float], Optional[float]]:
        """(position, MSDV) of the worst evaluated position."""
        valid = [(pos, dose) for pos, dose in self.msdv.items() if dose is not None]
        if not valid:
            return None, None
        return max(valid, key=lambda item: item[1])

    def to_dict(self) -> dict:
        return {
            "computed_at": self.computed_at.isoformat(),
            "wave": {
                "significant_height_m": self.wave.significant_height_m,
                "peak_period_s": self.wave.peak_period_s,
                "direction_deg": self.wave.direction_deg,
            },
            "vessel": {
                "speed_kts": self.vessel.speed_kts,
                "heading_deg": self.vessel.heading_deg,
            },
            "buckets": {
                "speed_kts": self.speed_bucket_kts,
                "heading_deg": self.heading_bucket_deg,
            },
            "calibration": {
                "alpha": self.alpha,
                "converged": self.calibration_converged,
            },
            "frequencies": self.frequencies.tolist(),
            "weighted_psd": self.weighted.to_dict(),
            "vertical_psd": {position_key(pos): psd.tolist() for pos, psd in self.vertical.items()},
            "msdv": {position_key(pos): dose for pos, dose in self.msdv.items()},
            "faults": [
                {"stage": fault.stage, "bins": fault.bins} for fault in self.faults
            ],
        }


class MotionSicknessPipeline:
    """
    Runs the spectral pipeline for one observation at a time.

    Thread-safe: concurrent runs share the response library and the cached
    spectrum, both guarded.

    Usage:
        pipeline = MotionSicknessPipeline(SpectrumSynthesizer(), ResponseLibrary("data/rao"))
        result = pipeline.run(WaveState(4.6, 14.2), VesselState(12.0, 150.0))
        print(result.msdv[0.0])
    """

    def __init__(
        self,
        synthesizer: SpectrumSynthesizer,
        library: ResponseLibrary,
        engine: Optional[MotionPSDEngine] = None,
        integrator: Optional[DoseIntegrator] = None,
        positions_m: Sequence[float] = DEFAULT_POSITIONS_M,
        strict_calibration: bool = False,
    ):
        self.synthesizer = synthesizer
        self.library = library
        self.engine = engine or MotionPSDEngine()
        self.integrator = integrator or DoseIntegrator()
        self.positions_m = tuple(float(p) + 0.0 for p in positions_m)
        self.strict_calibration = strict_calibration

        self._spectrum_lock = Lock()
        self._last_spectrum: Optional[Tuple[Tuple[float, float], SpectrumCurve]] = None

    def spectrum_for(self, wave: WaveState) -> SpectrumCurve:
        """Synthesized spectrum for a sea state, reusing the last one if Hs/Tp match."""
        key = (wave.significant_height_m, wave.peak_period_s)
        with self._spectrum_lock:
            if self._last_spectrum is not None and self._last_spectrum[0] == key:
                return self._last_spectrum[1]

        curve = self.synthesizer.synthesize(*key, strict=self.strict_calibration)

        with self._spectrum_lock:
            self._last_spectrum = (key, curve)
        return curve

    def responses_for(self, vessel: VesselState) -> Tuple[ResponseFunction, ResponseFunction]:
        """Heave and pitch responses, pitch aligned to the heave grid."""
        heave = self.library.load(Dof.HEAVE, vessel.speed_kts, vessel.heading_deg)
        pitch = self.library.load(Dof.PITCH, vessel.speed_kts, vessel.heading_deg)

        if not np.array_equal(heave.frequencies, pitch.frequencies):
            logger.debug(
                f"Resampling pitch RAO ({len(pitch)} points) onto heave grid ({len(heave)} points)"
            )
            pitch = _resample(pitch, heave.frequencies)

        return heave, pitch

    @timed("pipeline_run")
    def run(
        self,
        wave: WaveState,
        vessel: VesselState,
        positions: Optional[Sequence[float]] = None,
    ) -> PipelineResult:
        """
        Compute weighted PSDs and MSDV for one observation.

        Raises:
            InputValidationError: invalid sea state, vessel state or grid
            ParseError: response table missing or malformed
            CalibrationNonConvergence: only with strict_calibration
        """
        wave.validate()
        vessel.validate()
        positions = self.positions_m if positions is None else tuple(float(p) + 0.0 for p in positions)

        curve = self.spectrum_for(wave)
        heave, pitch = self.responses_for(vessel)
        grid = validate_grid(heave.frequencies)

        faults: List[ComputationFault] = []
        spectrum = self.engine.interpolate_spectrum(curve, heave)
        displacement = self.engine.displacement_psds(spectrum, heave, pitch, faults)
        acceleration = self.engine.acceleration_psds(grid, displacement, faults)
        weighted = self.engine.weighted_psds(grid, acceleration, faults)
        vertical = self.engine.vertical_motion_psd(positions, weighted, faults)
        msdv = self.integrator.msdv(vertical, grid)

        metrics.increment("pipeline_runs_processed")
        if 0.0 in msdv and msdv[0.0] is not None:
            metrics.set_gauge("msdv_midships", msdv[0.0])

        logger.debug(
            f"Pipeline run Hs={wave.significant_height_m:.2f} m Tp={wave.peak_period_s:.2f} s "
            f"at {heave.speed_kts:g} kn / {heave.heading_deg:g} deg: "
            f"{len(faults)} fault(s)"
        )

        return PipelineResult(
            wave=wave,
            vessel=vessel,
            speed_bucket_kts=heave.speed_kts,
            heading_bucket_deg=heave.heading_deg,
            alpha=curve.alpha,
            calibration_converged=curve.converged,
            frequencies=grid,
            weighted=weighted,
            vertical=vertical,
            msdv=msdv,
            faults=faults,
        )


def _resample(response: ResponseFunction, frequencies: np.ndarray) -> ResponseFunction:
    amplitude = interpolate(response.frequencies, response.amplitude, frequencies)
    phase = interpolate(response.frequencies, response.phase_deg, frequencies)
    for arr in (amplitude, phase):
        arr.setflags(write=False)
    return ResponseFunction(
        dof=response.dof,
        speed_kts=response.speed_kts,
        heading_deg=response.heading_deg,
        frequencies=frequencies,
        amplitude=amplitude,
        phase_deg=phase,
        source=response.source,
    )
