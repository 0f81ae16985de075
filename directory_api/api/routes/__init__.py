from __future__ import annotations

from directory_api.api.routes.admin import router as admin_router
from directory_api.api.routes.health import router as health_router
from directory_api.api.routes.submissions import router as submissions_router

__all__ = ["admin_router", "health_router", "submissions_router"]
