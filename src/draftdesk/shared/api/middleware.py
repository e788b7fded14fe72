"""
Shared API Middleware
======================

Request tracing middleware and the exception handlers of the API.

Exception mapping:
- ValidationException (blank inquiry, bad search arguments) -> 400
- ExternalServiceException (LLM, vector store, Slack) -> 503
- any other ApplicationException -> 500
- anything else -> 500 via the global handler
"""

import time
import uuid
from typing import Any, Callable, Dict
from datetime import datetime, timezone

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from draftdesk.core import ApplicationException, ExternalServiceException, ValidationException
from draftdesk.shared.infrastructure.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


def _request_fields(request: Request) -> Dict[str, Any]:
    return {"method": request.method, "path": request.url.path}


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Binds a correlation ID to each request.

    Taken from the ``X-Correlation-ID`` header when present. It doubles as the
    webhook request id and is bound to the logging context, so pipeline logs
    deep inside the request carry it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or f"req_{uuid.uuid4().hex[:12]}"

        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
        finally:
            set_correlation_id(None)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with status and response time."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed", extra={
                **_request_fields(request),
                "error": str(e),
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            })
            raise

        response_time_ms = int((time.perf_counter() - start_time) * 1000)
        response.headers["X-Response-Time-Ms"] = str(response_time_ms)
        logger.info("Request completed", extra={
            **_request_fields(request),
            "status_code": response.status_code,
            "response_time_ms": response_time_ms
        })
        return response


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Map the application exception taxonomy onto HTTP status codes."""
    if isinstance(exc, ValidationException):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ExternalServiceException):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    log = logger.warning if status_code < 500 else logger.error
    log("Request rejected", extra={
        **_request_fields(request),
        "status_code": status_code,
        "error_type": type(exc).__name__,
        "error_message": exc.message
    })

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_type": type(exc).__name__,
            "correlation_id": _correlation_id(request)
        }
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler for exceptions outside the application taxonomy.

    The exception text is only echoed in development.
    """
    logger.error("Unhandled exception", extra={
        **_request_fields(request),
        "error_type": type(exc).__name__,
        "error_message": str(exc)
    })

    settings = getattr(request.app.state, "settings", None)
    is_dev = getattr(settings, "environment", None) == "development"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "correlation_id": _correlation_id(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )
