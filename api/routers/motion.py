"""
Motion-sickness API router.

Handles spectrum synthesis, synchronous MSDV assessment, the sensor feed
into the coalescing runner and retrieval of its latest result.

Domain errors are mapped by the application-level handlers in api.main:
InputValidationError -> 400, ParseError -> 422.
"""

import logging

from fastapi import APIRouter, HTTPException

from api.schemas import (
    AssessRequest,
    AssessResponse,
    FeedResponse,
    SpectrumRequest,
    SpectrumResponse,
    WaveStateModel,
    VesselStateModel,
)
from api.state import get_pipeline_state
from src.spectral import PipelineResult

router = APIRouter(tags=["Motion"])

logger = logging.getLogger(__name__)


# ---- helpers ----------------------------------------------------------------

def _assessment_response(result: PipelineResult, include_series: bool) -> AssessResponse:
    state = get_pipeline_state()
    comfort = state.advisor.assess(result.msdv, result.wave, result.vessel)
    data = result.to_dict()

    response = AssessResponse(
        computed_at=result.computed_at,
        speed_bucket_kts=result.speed_bucket_kts,
        heading_bucket_deg=result.heading_bucket_deg,
        alpha=result.alpha,
        calibration_converged=result.calibration_converged,
        msdv=data["msdv"],
        comfort=comfort.to_dict(),
        faults=data["faults"],
    )
    if include_series:
        response.frequencies = data["frequencies"]
        response.weighted_psd = data["weighted_psd"]
        response.vertical_psd = data["vertical_psd"]
    return response


# ---- endpoints -------------------------------------------------------------

@router.post("/api/spectrum", response_model=SpectrumResponse)
def synthesize_spectrum(request: SpectrumRequest):
    """Calibrated JONSWAP spectrum on the fixed 0.01-6.00 rad/s grid."""
    synthesizer = get_pipeline_state().pipeline.synthesizer
    curve = synthesizer.synthesize(
        request.significant_height_m, request.peak_period_s, strict=request.strict
    )
    return SpectrumResponse(
        significant_height_m=curve.Hs,
        peak_period_s=curve.Tp,
        alpha=curve.alpha,
        converged=curve.converged,
        iterations=curve.iterations,
        significant_height_check_m=curve.significant_height_m,
        frequencies=curve.frequencies.tolist(),
        density=curve.density.tolist(),
    )


@router.post("/api/motion/assess", response_model=AssessResponse)
def assess_motion(request: AssessRequest):
    """Run the pipeline synchronously and assess crew comfort."""
    pipeline = get_pipeline_state().pipeline
    result = pipeline.run(
        request.wave.to_state(),
        request.vessel.to_state(),
        positions=request.positions_m,
    )
    return _assessment_response(result, request.include_series)


@router.post("/api/feed", response_model=FeedResponse, status_code=202)
def feed_observation(wave: WaveStateModel, vessel: VesselStateModel):
    """
    Submit a sensor observation to the coalescing runner.

    Inputs are validated up front so a bad observation is rejected here
    rather than surfacing later as the runner's last_error.
    """
    state = get_pipeline_state()
    wave_state = wave.to_state().validate()
    vessel_state = vessel.to_state().validate()

    runner = state.runner
    generation = runner.submit(wave_state, vessel_state)
    if not runner.is_running:
        runner.run_once()

    return FeedResponse(accepted=True, generation=generation, runner_running=runner.is_running)


@router.get("/api/motion/latest", response_model=AssessResponse)
def latest_motion(include_series: bool = False):
    """Last good result of the coalescing runner."""
    runner = get_pipeline_state().runner
    result = runner.latest_result
    if result is None:
        error = runner.last_error
        detail = "No motion assessment available yet"
        if error is not None:
            detail += f" (last run failed: {error})"
        raise HTTPException(status_code=404, detail=detail)
    return _assessment_response(result, include_series)
