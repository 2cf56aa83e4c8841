"""HTTP middleware for request correlation and CORS.

``request_id_middleware``:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and total duration into response headers
- Clears context after request completion to prevent context leaks

``cors_middleware``:
- Answers every ``OPTIONS`` preflight directly with the CORS headers and no body
- Adds the same headers to every other response, errors included

Usage:
    app.middleware("http")(cors_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from docs_gateway.core.config import Settings, settings
from docs_gateway.core.logging import clear_request_id, set_request_id


def cors_headers(cfg: Settings | None = None) -> dict[str, str]:
    """Permissive CORS headers sent on every response."""
    cfg = cfg or settings
    return {
        "Access-Control-Allow-Origin": cfg.app.cors_allow_origin,
        "Access-Control-Allow-Headers": cfg.app.cors_allow_headers,
    }


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    # Outlives the contextvar for handlers running outside this middleware
    request.state.request_id = request_id
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def cors_middleware(request: Request, call_next) -> Response:
    """Short-circuit preflights and decorate responses with CORS headers."""

    headers = cors_headers(getattr(request.app.state, "settings", None))
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=headers)

    response: Response = await call_next(request)
    for name, value in headers.items():
        response.headers.setdefault(name, value)
    return response
