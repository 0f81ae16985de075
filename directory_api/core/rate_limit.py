"""Rate limiting wiring for the submission endpoint.

This module builds the configured limiter once per process and resolves the
key it is applied to (the submitter IP).

Rate limiting strategy:
- One policy per deployment: ``memory`` (per-process counters) or ``store``
  (count of persisted records from the same IP in the window).
- Prefer ``store`` whenever more than one instance serves traffic.
- Disabled entirely with APP_RATE_LIMIT_ENABLED=false.
"""

from __future__ import annotations

import logging

from fastapi import Request

from directory_api.adapters.rate_limit.base import AbstractRateLimiter
from directory_api.adapters.rate_limit.in_memory import InMemoryRateLimiter
from directory_api.adapters.rate_limit.store_backed import StoreBackedRateLimiter
from directory_api.adapters.store.base import AbstractRecordStore
from directory_api.core.config import AppSettings, settings
from directory_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_rate_limiter(
    store: AbstractRecordStore,
    app_settings: AppSettings | None = None,
) -> AbstractRateLimiter | None:
    """Build the limiter selected by configuration.

    Args:
        store: Record store, used by the ``store`` policy.
        app_settings: Optional app settings; defaults to global settings.

    Returns:
        The limiter, or None when rate limiting is disabled.

    Raises:
        ValidationAppError: If the configured policy is unknown.
    """
    cfg = app_settings or settings.app

    if not cfg.rate_limit_enabled:
        logger.info("rate_limit.disabled")
        return None

    policy = cfg.rate_limit_policy.lower()
    if policy == "memory":
        return InMemoryRateLimiter(
            limit=cfg.rate_limit_requests,
            window_seconds=cfg.rate_limit_window_seconds,
        )
    if policy == "store":
        return StoreBackedRateLimiter(
            store,
            limit=cfg.rate_limit_requests,
            window_seconds=cfg.rate_limit_window_seconds,
        )

    raise ValidationAppError(
        code="rate_limit_unknown_policy",
        message=f"Unknown rate limit policy: '{policy}'. Supported policies: memory, store",
    )


def get_client_ip(request: Request) -> str:
    """Resolve the submitter IP.

    Uses the first ``X-Forwarded-For`` entry (set by the hosting proxy),
    then the socket peer, then ``"unknown"``.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
