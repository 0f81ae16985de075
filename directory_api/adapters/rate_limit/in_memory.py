"""In-memory per-key rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expired windows are evicted at most once per window length, so memory
  tracks the IPs seen in roughly the last two windows.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from directory_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _WindowState:
    count: int
    reset_at: float


class InMemoryRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in a window opened by the first hit.

    Each key gets its own window: when a request arrives after the key's
    ``reset_at``, the count restarts at zero and the window is reopened for
    ``window_seconds`` from that moment.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers or instances, each enforces its own independent limits; use
        the store-backed policy there.
    """

    policy_name = "memory"

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed requests per window.
            window_seconds: Size of the window in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._next_prune_at = clock() + window_seconds

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding a window."""
        with self._lock:
            return len(self._state_by_key)

    def _prune_expired(self, now: float) -> None:
        if now < self._next_prune_at:
            return
        expired = [key for key, state in self._state_by_key.items() if now > state.reset_at]
        for key in expired:
            del self._state_by_key[key]
        self._next_prune_at = now + self._window_seconds

    def _get_or_reset_state(self, key: str, now: float) -> _WindowState:
        state = self._state_by_key.get(key)
        if state is None or now > state.reset_at:
            state = _WindowState(count=0, reset_at=now + self._window_seconds)
            self._state_by_key[key] = state
        return state

    async def consume(self, key: str) -> RateLimitResult:
        """Check the key's window and count the request if allowed.

        Args:
            key: Unique identifier for rate limiting (the submitter IP).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            self._prune_expired(now)
            state = self._get_or_reset_state(key, now)

            if state.count >= self._limit:
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=int(state.reset_at),
                    retry_after_seconds=max(0, int(math.ceil(state.reset_at - now))),
                )

            state.count += 1
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=max(0, self._limit - state.count),
                reset_at=int(state.reset_at),
                retry_after_seconds=None,
            )
