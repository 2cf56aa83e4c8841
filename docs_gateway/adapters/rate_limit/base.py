"""Rate limiter interfaces.

The services depend on these abstractions (not the concrete implementations)
so we can swap storage backends later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests (or failures) per window.
        remaining: Remaining budget in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window or block ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for request-rate limiters."""

    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique identifier (e.g., client IP, client IP + document id).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError


class AbstractLockoutLimiter(ABC):
    """Interface for failure-driven lockout limiters.

    Unlike request-rate limiters, checking never consumes budget: only
    outcomes reported through ``record_failure``/``record_success`` mutate
    state.
    """

    @abstractmethod
    def check(self, key: str) -> RateLimitResult:
        """Return whether the key may attempt the guarded operation now."""
        raise NotImplementedError

    @abstractmethod
    def record_failure(self, key: str) -> RateLimitResult:
        """Record a failed attempt; returns the resulting state for the key."""
        raise NotImplementedError

    @abstractmethod
    def record_success(self, key: str) -> None:
        """Forget all failure history for the key."""
        raise NotImplementedError
