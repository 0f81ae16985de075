"""CORS preflight handling and the submission origin allowlist.

The static site calls the API cross-origin. Preflight (OPTIONS) requests are
answered directly for every path, and every response carries the CORS
headers. Public submissions can additionally be restricted to an Origin
allowlist (APP_ALLOWED_ORIGINS); an empty list allows any origin.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, Request, Response

from directory_api.core.config import parse_csv, settings
from directory_api.core.errors import ForbiddenAppError

logger = logging.getLogger(__name__)

ALLOW_METHODS = "GET, POST, OPTIONS"
ALLOW_HEADERS = "content-type, x-admin-token, x-request-id"


def allowed_origins() -> list[str]:
    return parse_csv(settings.app.allowed_origins)


def _apply_cors_headers(request: Request, response: Response) -> None:
    origins = allowed_origins()
    origin = request.headers.get("origin")
    if origins and origin in origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
    else:
        response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS


async def cors_middleware(request: Request, call_next) -> Response:
    """Answer preflight requests and decorate every response with CORS headers.

    Usage:
        app.middleware("http")(cors_middleware)
    """
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    _apply_cors_headers(request, response)
    return response


async def enforce_allowed_origin(
    origin: Annotated[str | None, Header()] = None,
) -> None:
    """FastAPI dependency rejecting submissions from origins outside the allowlist.

    Raises:
        ForbiddenAppError: 403 when an allowlist is configured and the
            request's Origin is absent from it.
    """
    origins = allowed_origins()
    if not origins or origin in origins:
        return

    logger.warning(
        "origin.forbidden",
        extra={"origin": origin or "", "allowlist_size": len(origins)},
    )
    raise ForbiddenAppError(code="forbidden_origin", message="Forbidden origin")
