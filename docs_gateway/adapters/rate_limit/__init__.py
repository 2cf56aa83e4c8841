"""Rate limiting adapters.

This package provides a small abstraction layer so the gateway can start with
in-memory limiters and later migrate to Redis or another shared store without
changing the service layer.
"""

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

__all__ = [
    "AbstractLockoutLimiter",
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "InMemoryLockoutLimiter",
    "InMemoryMinIntervalRateLimiter",
    "RateLimitResult",
]
