"""Submission intake orchestrating validation, rate limiting, storage and notification.

This service is the core of the public endpoint. For each inbound payload it:
- Validates and normalizes the fields and the arithmetic captcha
- Applies the per-IP rate limit (nothing is stored when throttled)
- Assembles and persists a pending record
- Announces the record to moderators (best-effort, never affects the result)
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.adapters.rate_limit.base import AbstractRateLimiter
from directory_api.adapters.store.base import AbstractRecordStore
from directory_api.core.errors import InternalAppError, RateLimitAppError, UpstreamAppError
from directory_api.core.logging import hash_for_log
from directory_api.core.validation import validate_submission_payload
from directory_api.schemas.submission import SubmissionPayload, SubmissionRecord, SubmissionStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return str(uuid.uuid4())


class SubmissionService:
    """Service accepting public resource submissions.

    Attributes:
        store: Record store receiving new submissions.
        rate_limiter: Per-IP limiter, or None when rate limiting is disabled.
        notifier: Best-effort moderator notifier.
    """

    def __init__(
        self,
        store: AbstractRecordStore,
        rate_limiter: AbstractRateLimiter | None,
        notifier: AbstractNotifier,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        self.store = store
        self.rate_limiter = rate_limiter
        self.notifier = notifier
        self._clock = clock
        self._id_factory = id_factory

    async def _enforce_rate_limit(self, ip: str) -> None:
        """Consume one unit of the IP's budget.

        Raises:
            RateLimitAppError: When the IP is over its limit.
        """
        if self.rate_limiter is None:
            return

        result = await self.rate_limiter.consume(ip)
        ip_hash = hash_for_log(ip)
        if result.allowed:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "key_hash": ip_hash,
                    "policy": self.rate_limiter.policy_name,
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": ip_hash,
                "policy": self.rate_limiter.policy_name,
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise RateLimitAppError(
            code="rate_limited",
            message="Too many submissions. Try again later.",
            details={"limit": result.limit, "retry_after": result.retry_after_seconds or 0},
        )

    def _build_record(self, draft: SubmissionPayload, *, ip: str, user_agent: str) -> SubmissionRecord:
        return SubmissionRecord(
            id=self._id_factory(),
            name=draft.name,
            url=draft.url,
            description=draft.description,
            tags=list(draft.tags),
            disciplines=list(draft.disciplines),
            contact=draft.contact,
            page=draft.page,
            ip=ip,
            user_agent=user_agent,
            ts=self._clock(),
            status=SubmissionStatus.PENDING,
        )

    async def submit(
        self,
        payload: Mapping[str, Any],
        *,
        ip: str,
        user_agent: str = "",
    ) -> SubmissionRecord:
        """Run the intake workflow for one submission.

        Args:
            payload: Decoded JSON body.
            ip: Submitter IP (resolved by the HTTP layer).
            user_agent: Submitter User-Agent header.

        Returns:
            SubmissionRecord: The stored pending record.

        Raises:
            ValidationAppError: First failing field or captcha failure.
            RateLimitAppError: Submitter exceeded the rate limit.
            InternalAppError: The record could not be stored; the client must retry.
        """
        draft = validate_submission_payload(payload)

        await self._enforce_rate_limit(ip)

        record = self._build_record(draft, ip=ip, user_agent=user_agent)
        try:
            await self.store.insert(record)
        except (InternalAppError, UpstreamAppError) as exc:
            logger.error(
                "submission.store_failed",
                extra={
                    "record_id": record.id,
                    "error_code": exc.code,
                    "backend": self.store.backend_name,
                },
            )
            raise InternalAppError(
                code="store_insert_failed",
                message="Could not save the submission. Please try again.",
            ) from exc

        logger.info(
            "submission.accepted",
            extra={
                "record_id": record.id,
                "ip_hash": hash_for_log(ip),
                "tag_count": len(record.tags),
                "discipline_count": len(record.disciplines),
            },
        )

        await self._notify(record)
        return record

    async def _notify(self, record: SubmissionRecord) -> None:
        # Runs after the insert; never raises
        try:
            await self.notifier.notify(record)
        except Exception as exc:
            logger.warning(
                "notify.failed",
                extra={
                    "record_id": record.id,
                    "reason": "notifier_raised",
                    "error_type": type(exc).__name__,
                },
            )
