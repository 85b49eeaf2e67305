"""
SEADOSE API Pydantic schemas.

Re-exports all schema classes:
    from api.schemas import AssessRequest, SpectrumRequest, ...
"""

from .motion import (  # noqa: F401
    WaveStateModel,
    VesselStateModel,
    SpectrumRequest,
    SpectrumResponse,
    AssessRequest,
    ComfortModel,
    FaultModel,
    AssessResponse,
    FeedResponse,
)
