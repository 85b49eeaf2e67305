"""
System / health / metrics API router.

Handles the root endpoint, health checks and the pipeline metrics summary.
"""

import logging

from fastapi import APIRouter

from api.middleware import get_request_id
from api.state import get_app_state
from src.metrics import metrics

router = APIRouter(tags=["System"])

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@router.get("/")
async def root():
    """
    API root endpoint.

    Returns basic API information and available endpoint categories.
    """
    return {
        "name": "SEADOSE API",
        "version": API_VERSION,
        "status": "operational",
        "docs": "/api/docs",
        "endpoints": {
            "health": "/api/health",
            "metrics": "/api/metrics",
            "spectrum": "/api/spectrum",
            "motion": "/api/motion/...",
            "feed": "/api/feed",
        },
    }


@router.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        - status: healthy, or degraded when response tables are missing
        - components: response tables, runner, uptime
    """
    components = get_app_state().health_check()
    status = "healthy" if components["response_tables"] == "healthy" else "degraded"
    return {
        "status": status,
        "version": API_VERSION,
        "components": components,
        "request_id": get_request_id(),
    }


@router.get("/api/metrics")
async def get_pipeline_metrics():
    """
    Pipeline metrics in JSON format.

    Timings (jonswap_synthesis, pipeline_run), degradation counters
    (calibration_nonconvergence, computation_faults, runs_superseded, ...)
    and gauges (jonswap_alpha, msdv_midships).
    """
    return metrics.get_summary()
