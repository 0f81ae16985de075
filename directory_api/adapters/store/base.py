"""Record store interface.

The services depend on this abstraction only; the concrete backend
(relational table or key-value namespace) is chosen once at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from directory_api.schemas.submission import SubmissionRecord, SubmissionStatus

MAX_PAGE_SIZE = 50


def clamp_page_size(limit: int, max_limit: int = MAX_PAGE_SIZE) -> int:
    return max(1, min(int(limit), max_limit))


@dataclass(frozen=True)
class SubmissionPage:
    """One page of records, newest first.

    Attributes:
        items: Records ordered by ``ts`` desc, then ``id`` desc.
        next_cursor: Cursor of the last item, or None for an empty page.
    """

    items: list[SubmissionRecord] = field(default_factory=list)
    next_cursor: str | None = None


class AbstractRecordStore(ABC):
    """Interface for submission record stores."""

    backend_name: str = "abstract"

    @abstractmethod
    async def insert(self, record: SubmissionRecord) -> None:
        """Persist a new record.

        Raises:
            DuplicateIdError: If a record with the same id exists.
            StoreUnavailableError: If the backend fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, record_id: str) -> SubmissionRecord:
        """Fetch one record.

        Raises:
            NotFoundAppError: If no record has this id.
        """
        raise NotImplementedError

    @abstractmethod
    async def update(
        self,
        record_id: str,
        status: SubmissionStatus,
        note: str = "",
    ) -> SubmissionRecord:
        """Set status, admin note and admin timestamp of one record.

        All other fields, ``ts`` included, are left untouched.

        Raises:
            NotFoundAppError: If no record has this id.
        """
        raise NotImplementedError

    @abstractmethod
    async def list(
        self,
        *,
        query: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> SubmissionPage:
        """List records newest first with keyset pagination.

        Args:
            query: Optional case-insensitive substring matched against name,
                url, description, contact, tags and disciplines.
            cursor: Opaque cursor from a previous page.
            limit: Page size, clamped to [1, MAX_PAGE_SIZE].

        Raises:
            ValidationAppError: If the cursor cannot be decoded.
        """
        raise NotImplementedError

    @abstractmethod
    async def count_recent(self, ip: str, since: datetime) -> int:
        """Count records submitted from ``ip`` with ``ts`` after ``since``."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release connections/clients held by the store."""
        return None
