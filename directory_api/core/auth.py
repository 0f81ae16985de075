"""Admin token authentication.

Moderation endpoints are gated by one shared secret, configured via
APP_ADMIN_TOKEN and presented in the X-Admin-Token header.

Design principles:
- Single Responsibility: Only handles admin credential validation
- Dependency Injection: Used via FastAPI Depends() so it runs before the
  endpoint touches the store
- Fail closed: with no configured token every admin call is rejected
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header

from directory_api.core.config import settings
from directory_api.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"


def validate_admin_token(provided_token: str | None) -> None:
    """Validate that the provided token matches the configured admin token.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_token: Value of the X-Admin-Token header, if any.

    Raises:
        AuthenticationAppError: If no token is configured, none was provided,
            or the values differ.
    """
    expected = settings.app.admin_token

    if not expected:
        logger.error(
            "admin_auth.failed",
            extra={"reason": "admin_token_not_configured"},
        )
        raise AuthenticationAppError(
            code="unauthorized",
            message="Unauthorized",
            details={"hint": "Set APP_ADMIN_TOKEN to enable admin endpoints"},
        )

    if not provided_token:
        logger.warning(
            "admin_auth.failed",
            extra={"reason": "missing_token", "token_present": False},
        )
        raise AuthenticationAppError(code="unauthorized", message="Unauthorized")

    if not hmac.compare_digest(provided_token.encode(), expected.encode()):
        logger.warning(
            "admin_auth.failed",
            extra={
                "reason": "invalid_token",
                "token_present": True,
                "token_hash": hashlib.sha256(provided_token.encode()).hexdigest()[:16],
            },
        )
        raise AuthenticationAppError(code="unauthorized", message="Unauthorized")


async def verify_admin_token(
    x_admin_token: Annotated[str | None, Header(alias=ADMIN_TOKEN_HEADER)] = None,
) -> None:
    """FastAPI dependency for admin authentication.

    Usage:
        @router.get("/admin/thing", dependencies=[Depends(verify_admin_token)])
        async def admin_thing():
            ...

    Raises:
        AuthenticationAppError: 401 via the global handler when auth fails.
    """
    validate_admin_token(x_admin_token)
    logger.info("admin_auth.success", extra={"token_present": True})
