"""Request payload validation for submissions and admin updates.

Turns pydantic validation failures into ``ValidationAppError`` carrying a
stable code for the first failing field, so clients get one specific reason
instead of a list of schema errors.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import BaseModel, ValidationError

from directory_api.core.errors import ValidationAppError
from directory_api.schemas.submission import StatusUpdate, SubmissionPayload

logger = logging.getLogger(__name__)

SUBMISSION_FIELD_ERRORS: dict[str, tuple[str, str]] = {
    "name": ("invalid_name", "Invalid name"),
    "url": ("invalid_url", "Invalid url"),
    "description": ("invalid_description", "Invalid description"),
    "contact": ("invalid_contact", "Invalid contact"),
    "tags": ("invalid_tags", "Invalid tags"),
    "disciplines": ("invalid_disciplines", "Invalid disciplines"),
    "page": ("invalid_page", "Invalid page"),
    "captcha": ("captcha_failed", "Captcha failed"),
}

UPDATE_FIELD_ERRORS: dict[str, tuple[str, str]] = {
    "id": ("missing_id", "Missing id"),
    "status": ("invalid_status", "Invalid status"),
    "note": ("invalid_note", "Invalid note"),
}


def _first_failing_field(exc: ValidationError) -> str | None:
    """Return the top-level field of the first reported error.

    pydantic reports field errors in declaration order, so this is the
    first failing field of the model.
    """
    for error in exc.errors():
        loc = error.get("loc") or ()
        if loc:
            return str(loc[0])
    return None


def _validate(
    model: type[BaseModel],
    data: Mapping[str, Any],
    field_errors: dict[str, tuple[str, str]],
) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        field = _first_failing_field(exc)
        code, message = field_errors.get(field or "", ("invalid_payload", "Invalid payload"))
        logger.info(
            "validation.rejected",
            extra={"model": model.__name__, "field": field, "error_code": code},
        )
        raise ValidationAppError(
            code=code,
            message=message,
            details={"field": field or ""},
        ) from exc


def validate_submission_payload(data: Mapping[str, Any]) -> SubmissionPayload:
    """Validate a public submission body.

    Args:
        data: Decoded JSON object from the request body.

    Returns:
        Normalized submission draft (strings trimmed, defaults applied).

    Raises:
        ValidationAppError: Code names the first failing field
            (``invalid_name`` ... ``captcha_failed``).
    """
    return _validate(SubmissionPayload, data, SUBMISSION_FIELD_ERRORS)


def validate_update_payload(data: Mapping[str, Any]) -> StatusUpdate:
    """Validate an admin status update body.

    Raises:
        ValidationAppError: ``missing_id``, ``invalid_status`` or ``invalid_note``.
    """
    return _validate(StatusUpdate, data, UPDATE_FIELD_ERRORS)
