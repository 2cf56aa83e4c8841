"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → mapped HTTP status (400, 401, 403, 404, 429, 500)
- Malformed request bodies → 400
- Unexpected Exception → generic 500 (safety net)
- Every body carries ``error`` (message), ``code`` and ``request_id``
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docs_gateway.core.config import settings
from docs_gateway.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthorizationAppError,
    NotFoundAppError,
    StoreAppError,
    ThrottledAppError,
    UnavailableAppError,
    ValidationAppError,
)
from docs_gateway.core.logging import get_request_id
from docs_gateway.core.middleware import cors_headers

logger = logging.getLogger(__name__)

# Most specific first; the first matching class wins
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (AuthenticationAppError, 401),
    (AuthorizationAppError, 403),
    (UnavailableAppError, 403),
    (NotFoundAppError, 404),
    (ThrottledAppError, 429),
    (StoreAppError, 500),
)


def status_for(exc: AppError) -> int:
    """Return the HTTP status code for a domain error (400 when unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _throttle_headers(exc: ThrottledAppError, include_headers: bool) -> dict[str, str]:
    headers = {"Retry-After": str(exc.retry_after_seconds)}
    if include_headers:
        if exc.limit is not None:
            headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = str(exc.remaining)
        if exc.reset_at is not None:
            headers["X-RateLimit-Reset"] = str(exc.reset_at)
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    content: dict = {
        "error": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }
    headers: dict[str, str] | None = None

    if isinstance(exc, ThrottledAppError):
        content["retryAfter"] = exc.retry_after_seconds
        cfg = getattr(request.app.state, "settings", settings)
        headers = _throttle_headers(exc, cfg.rate_limit.include_headers)

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed JSON or wrongly typed fields with a plain 400."""
    logger.warning(
        "request_validation_failed",
        extra={
            "request_path": request.url.path,
            "error_count": len(exc.errors()),
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "code": "invalid_request",
            "request_id": get_request_id(),
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message,
    so no stack traces or backend details reach the client.

    Starlette runs this handler outside the HTTP middleware stack, so the CORS
    and request-id headers those middlewares add are set here instead.
    """
    cfg = getattr(request.app.state, "settings", None) or settings
    request_id = getattr(request.state, "request_id", None) or get_request_id()

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": request_id,
        },
    )

    headers = cors_headers(cfg)
    if request_id:
        headers[cfg.log.request_id_header] = request_id

    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "internal_server_error",
            "request_id": request_id,
        },
        headers=headers,
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
