"""Admin moderation: paginated listing and status transitions."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from directory_api.adapters.store.base import AbstractRecordStore, SubmissionPage
from directory_api.core.validation import validate_update_payload
from directory_api.schemas.submission import SubmissionRecord

logger = logging.getLogger(__name__)

# Leading integer of the value: "10abc" -> 10, "4.9" -> 4
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def clamp_limit(raw: str | int | None, *, default: int, maximum: int) -> int:
    """Parse and clamp a page size to [1, maximum].

    Missing values use ``default``; the leading integer of the value is used,
    and values without one fall to the minimum.

    Examples:
        >>> clamp_limit(None, default=20, maximum=50)
        20
        >>> clamp_limit("500", default=20, maximum=50)
        50
        >>> clamp_limit("10abc", default=20, maximum=50)
        10
        >>> clamp_limit("abc", default=20, maximum=50)
        1
    """
    if raw is None or raw == "":
        value = default
    else:
        match = _LEADING_INT.match(str(raw))
        value = int(match.group(1)) if match else 1
    return max(1, min(value, maximum))


class ModerationService:
    """Service behind the admin list and update endpoints.

    Attributes:
        store: Record store to query and update.
        default_limit: Page size when the caller gives none.
        max_limit: Upper bound for the page size.
    """

    def __init__(self, store: AbstractRecordStore, *, default_limit: int = 20, max_limit: int = 50) -> None:
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    async def list_submissions(
        self,
        *,
        limit: str | int | None = None,
        cursor: str | None = None,
        query: str | None = None,
    ) -> tuple[SubmissionPage, int]:
        """Fetch one page of submissions.

        Returns:
            Tuple of (page, effective_limit); the caller derives ``complete``
            from the effective limit.
        """
        effective_limit = clamp_limit(limit, default=self.default_limit, maximum=self.max_limit)
        query = (query or "").strip() or None
        cursor = (cursor or "").strip() or None

        page = await self.store.list(query=query, cursor=cursor, limit=effective_limit)
        logger.info(
            "moderation.listed",
            extra={
                "limit": effective_limit,
                "returned": len(page.items),
                "has_cursor": cursor is not None,
                "has_query": query is not None,
            },
        )
        return page, effective_limit

    async def update_status(self, payload: Mapping[str, Any]) -> SubmissionRecord:
        """Apply an admin status transition.

        Raises:
            ValidationAppError: ``missing_id``, ``invalid_status`` or ``invalid_note``.
            NotFoundAppError: Unknown id; nothing is changed.
        """
        update = validate_update_payload(payload)
        record = await self.store.update(update.id, update.status, update.note or "")
        logger.info(
            "moderation.status_updated",
            extra={"record_id": record.id, "status": record.status.value},
        )
        return record
