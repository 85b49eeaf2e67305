"""
Request middleware for the SEADOSE API.

One middleware tags each request with an ID, logs a JSON line per
assessment call and turns unhandled errors into a sanitized 500 that
still carries the ID. Pipeline errors are mapped by the exception
handlers in api.main and never reach it.
"""
import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

access_logger = logging.getLogger("seadose.api")


def get_request_id() -> Optional[str]:
    """Request ID of the request being served, None outside a request."""
    return request_id_ctx.get()


def _log_request(level: int, message: str, **fields):
    entry = {"message": message, "request_id": get_request_id(), **fields}
    access_logger.log(level, json.dumps({k: v for k, v in entry.items() if v is not None}, default=str))


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Request ID, access log and last-resort error handling.

    The ID is taken from X-Request-ID when the client sends one, otherwise
    a UUID4, and is echoed on every response including 500s.
    """

    # Polled endpoints are not access-logged
    QUIET_PATHS = {"/api/health", "/api/metrics", "/api/motion/latest"}

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                _log_request(
                    logging.ERROR,
                    "Unhandled exception",
                    method=request.method,
                    path=request.url.path,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                detail = str(e) if self.debug else "An internal error occurred. Please report the request ID."
                response = JSONResponse(
                    status_code=500,
                    content={"error": "Internal Server Error", "detail": detail, "request_id": request_id},
                )

            if request.url.path not in self.QUIET_PATHS:
                _log_request(
                    logging.INFO,
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


def setup_middleware(app: FastAPI, debug: bool = False):
    app.add_middleware(RequestContextMiddleware, debug=debug)
