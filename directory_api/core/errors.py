"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent across the codebase while
    letting each raiser include only what it knows.
    """

    code: str
    message: str
    hint: str
    field: str
    http_status: int
    retry_after: int
    limit: int
    record_id: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the admin credential is missing or wrong."""


class ForbiddenAppError(AppError):
    """Raised when a request comes from an origin that is not allowed."""


class NotFoundAppError(AppError):
    """Raised when a submission record does not exist."""


class RateLimitAppError(AppError):
    """Raised when a submitter exceeds the submission rate limit."""


class InternalAppError(AppError):
    """Raised on unexpected server-side faults, including store failures."""


class StoreUnavailableError(InternalAppError):
    """Raised when the record store cannot be reached or fails."""


class DuplicateIdError(InternalAppError):
    """Raised when inserting a record whose id already exists."""


class UpstreamAppError(AppError):
    """Raised when a dependent service is reachable but answers with a failure."""
