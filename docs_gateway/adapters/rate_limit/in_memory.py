"""In-memory request-rate limiters.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and a restart silently resets every counter.
- Thread-safe: uses a lock around shared state.
- Memory is bounded opportunistically: once the table grows past
  ``max_entries`` stale keys are swept on the next call.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from docs_gateway.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


def _validate_policy(limit: int, window_seconds: float, max_entries: int) -> None:
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if window_seconds <= 0:
        raise ValueError("window_seconds must be > 0")
    if max_entries < 1:
        raise ValueError("max_entries must be >= 1")


def _validate_consume(key: str, cost: int) -> None:
    if cost < 1:
        raise ValueError("cost must be >= 1")
    if not key:
        raise ValueError("key must be a non-empty string")


@dataclass
class _WindowState:
    reset_at: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter allowing ``limit`` units per window, per key.

    Each key's window opens on its first request and lasts ``window_seconds``.
    Once ``now >= reset_at`` the next request opens a fresh window. Rejected
    requests do not consume budget, so repeated throttled calls never push
    the reset further away.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Size of the window in seconds.
            max_entries: Table size above which expired windows are swept.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or max_entries are invalid.
        """
        _validate_policy(limit, window_seconds, max_entries)

        self._limit = limit
        self._window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _get_or_reset_state(self, key: str, now: float) -> _WindowState:
        state = self._state_by_key.get(key)
        if state is None or now >= state.reset_at:
            state = _WindowState(reset_at=now + self._window_seconds, count=0)
            self._state_by_key[key] = state
        return state

    def _sweep_locked(self, now: float) -> None:
        if len(self._state_by_key) <= self._max_entries:
            return
        expired = [k for k, s in self._state_by_key.items() if now >= s.reset_at]
        for key in expired:
            del self._state_by_key[key]

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Args:
            key: Unique identifier for rate limiting.
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        _validate_consume(key, cost)

        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            state = self._get_or_reset_state(key, now)
            reset_at = int(math.ceil(state.reset_at))

            if state.count + cost <= self._limit:
                state.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=max(0, self._limit - state.count),
                    reset_at=reset_at,
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=max(0, self._limit - state.count),
                reset_at=reset_at,
                retry_after_seconds=max(1, int(math.ceil(state.reset_at - now))),
            )


class InMemoryMinIntervalRateLimiter(AbstractRateLimiter):
    """Rate limiter enforcing a minimum spacing between requests, per key.

    The spacing is ``window_seconds / limit``: sustained traffic above
    ``limit`` per window is rejected, while well-spaced traffic is never
    rejected. Only accepted requests move the key's last-seen timestamp.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        _validate_policy(limit, window_seconds, max_entries)

        self._limit = limit
        self._window_seconds = window_seconds
        self._interval = window_seconds / limit
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._last_by_key: dict[str, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_by_key)

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def _sweep_locked(self, now: float) -> None:
        if len(self._last_by_key) <= self._max_entries:
            return
        cutoff = now - self._window_seconds
        stale = [k for k, last in self._last_by_key.items() if last < cutoff]
        for key in stale:
            del self._last_by_key[key]

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Accept the request if the key's previous request is far enough back.

        ``cost`` multiplies the spacing the request reserves.
        """
        _validate_consume(key, cost)

        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            last = self._last_by_key.get(key)

            if last is not None and now - last < self._interval:
                next_allowed = last + self._interval
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=int(math.ceil(next_allowed)),
                    retry_after_seconds=max(1, int(math.ceil(next_allowed - now))),
                )

            self._last_by_key[key] = now + self._interval * (cost - 1)
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=0,
                reset_at=int(math.ceil(now + self._interval * cost)),
                retry_after_seconds=None,
            )
