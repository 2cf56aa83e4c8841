"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what applies to it.
    """

    hint: str
    field: str
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    document_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (returned to clients).
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input is missing or malformed."""


class AuthenticationAppError(AppError):
    """Raised when credentials are unknown or wrong."""


class AuthorizationAppError(AppError):
    """Raised when a known principal lacks the required entitlement."""


class NotFoundAppError(AppError):
    """Raised when a referenced resource does not exist."""


class UnavailableAppError(AppError):
    """Raised when a resource exists but may not be accessed."""


@dataclass
class ThrottledAppError(AppError):
    """Raised when a rate limiter rejects the request.

    Attributes:
        retry_after_seconds: Seconds the client should wait before retrying.
        limit: Policy limit reported in X-RateLimit-Limit.
        remaining: Remaining budget reported in X-RateLimit-Remaining.
        reset_at: UNIX epoch seconds reported in X-RateLimit-Reset.
    """

    retry_after_seconds: int = 0
    limit: int | None = None
    remaining: int = 0
    reset_at: int | None = None


class StoreAppError(AppError):
    """Raised when an external store or credential service fails."""
