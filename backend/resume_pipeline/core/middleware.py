"""
Request middleware and error envelope
"""
import time
import uuid

import structlog
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from resume_pipeline.core.exceptions import ResumePipelineError

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Correlation-ID"


def error_response(status_code: int, message: str, error_type: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "details": details or {},
                "type": error_type,
            }
        },
    )


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to every log event emitted while serving the request"""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log request completion with timing"""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        response.headers["X-Process-Time-Ms"] = str(duration_ms)
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain errors and unexpected failures in the common error envelope"""

    @app.exception_handler(ResumePipelineError)
    async def resume_pipeline_exception_handler(request: Request, exc: ResumePipelineError):
        if exc.status_code >= 500:
            logger.error("request_error", path=request.url.path, error=exc.message, type=exc.__class__.__name__)
        return error_response(exc.status_code, exc.message, exc.__class__.__name__, exc.details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
        return error_response(500, "Internal server error", "InternalServerError")
