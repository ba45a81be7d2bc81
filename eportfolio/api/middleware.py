"""API middleware for logging and error handling."""
import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.exceptions import BaseAPIException
from ..core.logging import RequestLogger
from ..schemas.common import ErrorResponse

logger = structlog.get_logger(__name__)


def _error_response(
    status_code: int, message: str, error_code: str, details: dict = None
) -> JSONResponse:
    payload = ErrorResponse(
        error=message,
        error_code=error_code,
        details=details or {},
        timestamp=time.time(),
    )
    return JSONResponse(status_code=status_code, content=payload.model_dump())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Log request
        start_time = time.time()
        RequestLogger.log_request(
            method=request.method,
            path=str(request.url.path),
            request_id=request_id,
            extra_data={
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent")
            }
        )

        # Process request
        response = await call_next(request)

        # Calculate response time
        response_time_ms = (time.time() - start_time) * 1000

        # Log response
        RequestLogger.log_response(
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            response_time_ms=response_time_ms,
            request_id=request_id
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for turning exceptions into stable error payloads."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseAPIException as e:
            if e.status_code >= 500:
                logger.error(
                    "Request failed",
                    path=request.url.path,
                    error_code=e.error_code,
                    exc_info=e,
                )
                # Internal faults keep their details in the log only.
                message, details = "Internal server error", {}
            else:
                message, details = e.message, e.details
            return _error_response(e.status_code, message, e.error_code, details)

        except Exception as e:
            # Handle unexpected exceptions
            logger.error("Unhandled exception", path=request.url.path, exc_info=e)
            return _error_response(500, "Internal server error", "INTERNAL_ERROR")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Add security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
