"""Rate limiting wiring shared by every endpoint.

This module builds the per-endpoint limiters and derives the client identity
they are keyed by.

Design goals:
- Explicit ownership: limiters live in a ``RateLimiters`` container created by
  the app factory and injected into services, never in module globals, so
  each test can build isolated instances.
- Swap-friendly: services depend on the abstract limiter interfaces only.
- Best-effort: state is per-process; a restart or a second instance starts
  with empty counters.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from docs_gateway.adapters.rate_limit.base import (
    AbstractLockoutLimiter,
    AbstractRateLimiter,
    RateLimitResult,
)
from docs_gateway.adapters.rate_limit.in_memory import (
    InMemoryFixedWindowRateLimiter,
    InMemoryMinIntervalRateLimiter,
)
from docs_gateway.adapters.rate_limit.lockout import InMemoryLockoutLimiter
from docs_gateway.core.config import RateLimitSettings
from docs_gateway.core.errors import ThrottledAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimiters:
    """Process-owned limiter state, one limiter per endpoint policy.

    Attributes:
        login: Lockout limiter for admin authentication (keyed by client).
        signed_url: Fixed-window limiter for signed URL issuance (keyed by client).
        increment: Spacing limiter for download counting (keyed by client and document).
        enabled: When False, services skip every limiter.
    """

    login: AbstractLockoutLimiter
    signed_url: AbstractRateLimiter
    increment: AbstractRateLimiter
    enabled: bool = True


def build_rate_limiters(
    cfg: RateLimitSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> RateLimiters:
    """Create fresh limiters from configuration.

    Args:
        cfg: Rate limit settings.
        clock: Time source shared by all limiters (injectable for tests).

    Returns:
        RateLimiters: New, empty limiter state.
    """
    return RateLimiters(
        login=InMemoryLockoutLimiter(
            max_attempts=cfg.login_max_attempts,
            attempt_window_seconds=cfg.login_attempt_window_seconds,
            block_seconds=cfg.login_block_seconds,
            max_entries=cfg.login_max_entries,
            clock=clock,
        ),
        signed_url=InMemoryFixedWindowRateLimiter(
            limit=cfg.signed_url_requests,
            window_seconds=cfg.signed_url_window_seconds,
            max_entries=cfg.max_entries,
            clock=clock,
        ),
        increment=InMemoryMinIntervalRateLimiter(
            limit=cfg.increment_requests,
            window_seconds=cfg.increment_window_seconds,
            max_entries=cfg.max_entries,
            clock=clock,
        ),
        enabled=cfg.enabled,
    )


def get_client_identity(request: Request, *, trust_forwarded: bool = True) -> str:
    """Derive the ClientIdentity used to bucket limiter state.

    Prefers the first hop of X-Forwarded-For, then CF-Connecting-IP, then the
    socket peer.

    Args:
        request: FastAPI request.
        trust_forwarded: Honour proxy headers (disable when not behind a proxy).

    Returns:
        str: Opaque client key, ``"unknown"`` when nothing is available.
    """
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        cf_ip = request.headers.get("cf-connecting-ip")
        if cf_ip and cf_ip.strip():
            return cf_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def throttled_error(result: RateLimitResult, *, code: str, message: str) -> ThrottledAppError:
    """Build the 429 error for a rejected limiter result."""
    retry_after = result.retry_after_seconds or 1
    return ThrottledAppError(
        code=code,
        message=message,
        details={"retry_after": retry_after},
        retry_after_seconds=retry_after,
        limit=result.limit,
        remaining=result.remaining,
        reset_at=result.reset_at,
    )
