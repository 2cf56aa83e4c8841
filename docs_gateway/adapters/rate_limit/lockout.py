"""In-memory brute-force lockout limiter for login endpoints.

Tracks failed attempts per key inside a rolling attempt window. Reaching the
threshold blocks the key for a fixed duration; a success forgets the key.

Block state takes priority over the attempt window: while blocked every
check is rejected, failures are not counted, and a fresh window only opens
once the block has expired.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from docs_gateway.adapters.rate_limit.base import AbstractLockoutLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _AttemptRecord:
    count: int
    window_started_at: float
    last_attempt_at: float
    blocked_until: float = 0.0


class InMemoryLockoutLimiter(AbstractLockoutLimiter):
    """Per-key lockout after ``max_attempts`` failures within a window."""

    def __init__(
        self,
        *,
        max_attempts: int,
        attempt_window_seconds: int,
        block_seconds: int,
        max_entries: int = 500,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the lockout limiter.

        Args:
            max_attempts: Failures that trigger a block.
            attempt_window_seconds: Rolling window in which failures accumulate.
            block_seconds: How long a key stays blocked.
            max_entries: Table size above which stale records are swept.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If any threshold is invalid.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if attempt_window_seconds <= 0:
            raise ValueError("attempt_window_seconds must be > 0")
        if block_seconds <= 0:
            raise ValueError("block_seconds must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_attempts = max_attempts
        self._window = attempt_window_seconds
        self._block = block_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _AttemptRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _current_record_locked(self, key: str, now: float) -> _AttemptRecord | None:
        """Return the live record for key, dropping it once it has lapsed."""
        record = self._records.get(key)
        if record is None:
            return None
        if record.blocked_until > now:
            return record
        if record.blocked_until or now - record.window_started_at >= self._window:
            # Block served, or window rolled over without reaching the threshold
            del self._records[key]
            return None
        return record

    def _blocked_result(self, record: _AttemptRecord, now: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self._max_attempts,
            remaining=0,
            reset_at=int(math.ceil(record.blocked_until)),
            retry_after_seconds=max(1, int(math.ceil(record.blocked_until - now))),
        )

    def _allowed_result(self, record: _AttemptRecord | None, now: float) -> RateLimitResult:
        if record is None:
            return RateLimitResult(
                allowed=True,
                limit=self._max_attempts,
                remaining=self._max_attempts,
                reset_at=int(math.ceil(now + self._window)),
                retry_after_seconds=None,
            )
        return RateLimitResult(
            allowed=True,
            limit=self._max_attempts,
            remaining=max(0, self._max_attempts - record.count),
            reset_at=int(math.ceil(record.window_started_at + self._window)),
            retry_after_seconds=None,
        )

    def _sweep_locked(self, now: float) -> None:
        if len(self._records) <= self._max_entries:
            return
        horizon = self._window * 2
        stale = [
            key
            for key, record in self._records.items()
            if record.blocked_until <= now and now - record.last_attempt_at > horizon
        ]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug(
                "lockout.swept",
                extra={"evicted": len(stale), "size": len(self._records)},
            )

    def check(self, key: str) -> RateLimitResult:
        """Return whether the key may attempt a login now (never mutates budget)."""
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        with self._lock:
            record = self._current_record_locked(key, now)
            if record is not None and record.blocked_until > now:
                return self._blocked_result(record, now)
            return self._allowed_result(record, now)

    def record_failure(self, key: str) -> RateLimitResult:
        """Count a failed attempt, blocking the key once the threshold is hit.

        Failures reported while the key is already blocked are ignored so an
        attacker hammering a blocked key cannot extend the block for others
        sharing the same identity.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            record = self._current_record_locked(key, now)

            if record is None:
                record = _AttemptRecord(count=0, window_started_at=now, last_attempt_at=now)
                self._records[key] = record
            elif record.blocked_until > now:
                return self._blocked_result(record, now)

            record.count += 1
            record.last_attempt_at = now

            if record.count >= self._max_attempts:
                record.blocked_until = now + self._block
                logger.warning(
                    "lockout.blocked",
                    extra={
                        "failures": record.count,
                        "block_s": self._block,
                    },
                )
                return self._blocked_result(record, now)

            return self._allowed_result(record, now)

    def record_success(self, key: str) -> None:
        """Clear all failure history for the key."""
        now = self._clock()
        with self._lock:
            self._records.pop(key, None)
            self._sweep_locked(now)
