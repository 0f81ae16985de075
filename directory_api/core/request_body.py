"""JSON request body reading for endpoints that validate payloads themselves."""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Request

from directory_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


async def read_json_object(request: Request) -> dict[str, Any]:
    """Read the request body and decode it as a JSON object.

    Args:
        request: Incoming FastAPI request.

    Returns:
        The decoded object.

    Raises:
        ValidationAppError: ``invalid_json`` if the body is empty, not JSON,
            or not a JSON object.
    """
    raw = await request.body()
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        data = None

    if not isinstance(data, dict):
        logger.info(
            "request_body.invalid_json",
            extra={"body_bytes": len(raw), "request_path": request.url.path},
        )
        raise ValidationAppError(code="invalid_json", message="Invalid JSON")

    return data
