"""
Request middleware for logging, timing, and request ID tracking.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from eventsync.core.logging import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id (the caller's X-Request-ID when present) to structlog
    for the lifetime of the request, so sync logs triggered by a UI call
    correlate with it, and logs status and duration.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        start_time = time.perf_counter()

        with structlog.contextvars.bound_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        ):
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    "ui_request_failed",
                    error=str(e),
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
                raise

            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info("ui_request_completed", status_code=response.status_code, duration_ms=duration_ms)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"
            return response
