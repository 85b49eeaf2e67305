"""
FastAPI Backend for SEADOSE.

Provides REST API endpoints for:
- JONSWAP spectrum synthesis
- Weighted motion PSDs and MSDV per hull position
- Crew comfort assessment
- Coalesced processing of a sensor observation feed

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from api.config import settings
from api.middleware import get_request_id, setup_middleware
from api.routers import motion, system
from api.state import get_app_state
from src.config import settings as pipeline_settings
from src.spectral import (
    CalibrationNonConvergence,
    InputValidationError,
    ParseError,
    SpectralError,
)

pipeline_settings.configure_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start the coalescing runner with the app, stop it on shutdown."""
    runner = get_app_state().pipeline.runner
    if settings.runner_enabled:
        runner.start()
    try:
        yield
    finally:
        runner.stop()


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory for the SEADOSE API.

    Creates and configures the FastAPI application with middleware,
    routers and exception handlers.

    Returns:
        FastAPI: Configured application instance
    """
    application = FastAPI(
        title="SEADOSE API",
        description="""
## Vessel Motion-Sickness Assessment API

Estimates motion-sickness dose values (MSDV) at hull positions from the
current sea state and the vessel's response amplitude operators.

### Features
- Calibrated JONSWAP wave spectra
- ISO 2631-1 Wf-weighted vertical motion PSDs
- MSDV per position and crew comfort advisory
- Latest-wins processing of sensor updates
        """,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    setup_middleware(application, debug=settings.is_development)

    # CORS middleware - use configured origins only (NO WILDCARDS)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_credentials,
        allow_methods=[m.strip() for m in settings.cors_methods.split(",")],
        allow_headers=["*"],
    )

    application.include_router(system.router)
    application.include_router(motion.router)

    _install_exception_handlers(application)

    return application


def _error_response(status_code: int, error: str, exc: Exception) -> JSONResponse:
    request_id = get_request_id()
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": str(exc), "request_id": request_id},
    )


def _install_exception_handlers(application: FastAPI):
    @application.exception_handler(InputValidationError)
    async def input_validation_handler(request: Request, exc: InputValidationError):
        logger.warning(f"Invalid input on {request.method} {request.url.path}: {exc}")
        return _error_response(400, "Invalid input", exc)

    @application.exception_handler(ParseError)
    async def parse_error_handler(request: Request, exc: ParseError):
        logger.error(f"Response table error on {request.method} {request.url.path}: {exc}")
        return _error_response(422, "Response table unavailable", exc)

    @application.exception_handler(CalibrationNonConvergence)
    async def calibration_handler(request: Request, exc: CalibrationNonConvergence):
        return _error_response(422, "Spectrum calibration did not converge", exc)

    @application.exception_handler(SpectralError)
    async def spectral_error_handler(request: Request, exc: SpectralError):
        logger.error(f"Pipeline error on {request.method} {request.url.path}: {exc}")
        return _error_response(500, "Pipeline error", exc)

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


# Create the application
app = create_app()


# ============================================================================
# Run Server
# ============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level,
    )
