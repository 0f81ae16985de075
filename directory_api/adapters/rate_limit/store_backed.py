"""Rate limiter deriving its state from persisted submissions.

Counts the records an IP created within the last window straight from the
record store, so every instance sharing the store sees the same count.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from directory_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from directory_api.adapters.store.base import AbstractRecordStore
from directory_api.core.errors import InternalAppError, UpstreamAppError
from directory_api.core.logging import hash_for_log

logger = logging.getLogger(__name__)


class StoreBackedRateLimiter(AbstractRateLimiter):
    """Rolling-window limiter backed by ``AbstractRecordStore.count_recent``.

    Fails open: if the count query fails the request is allowed and a
    warning is logged, so a store hiccup never blocks legitimate submitters.
    """

    policy_name = "store"

    def __init__(
        self,
        store: AbstractRecordStore,
        *,
        limit: int,
        window_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock

    async def consume(self, key: str) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        since = datetime.fromtimestamp(now - self._window_seconds, tz=timezone.utc)
        reset_at = int(now + self._window_seconds)

        try:
            count = await self._store.count_recent(key, since)
        except (InternalAppError, UpstreamAppError) as exc:
            logger.warning(
                "rate_limit.fail_open",
                extra={
                    "key_hash": hash_for_log(key),
                    "error_code": exc.code,
                    "backend": self._store.backend_name,
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=self._limit,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        if count >= self._limit:
            # The oldest counted record is unknown here; the full window is an upper bound.
            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=0,
                reset_at=reset_at,
                retry_after_seconds=self._window_seconds,
            )

        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=max(0, self._limit - count - 1),
            reset_at=reset_at,
            retry_after_seconds=None,
        )
