"""Opaque keyset pagination cursors.

A cursor is the URL-safe base64 of ``"<ISO-8601 ts>|<id>"`` for the last
record of a page.
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone

from directory_api.core.errors import ValidationAppError


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset) and normalize others."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def encode_cursor(ts: datetime, record_id: str) -> str:
    raw = f"{ensure_utc(ts).isoformat()}|{record_id}".encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Decode a cursor into its ``(ts, id)`` pair.

    Raises:
        ValidationAppError: ``invalid_cursor`` for anything not produced by
            encode_cursor.
    """
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        ts_text, record_id = raw.split("|", 1)
        ts = ensure_utc(datetime.fromisoformat(ts_text))
    except (ValueError, UnicodeError, binascii.Error) as exc:
        raise ValidationAppError(code="invalid_cursor", message="Invalid cursor") from exc

    if not record_id:
        raise ValidationAppError(code="invalid_cursor", message="Invalid cursor")
    return ts, record_id
