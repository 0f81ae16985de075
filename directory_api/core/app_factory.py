from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (services, middleware, handlers, routers) so
tests can build isolated apps with their own store, limiter and notifier.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.adapters.notify.factory import create_notifier
from directory_api.adapters.rate_limit.base import AbstractRateLimiter
from directory_api.adapters.store.base import AbstractRecordStore
from directory_api.adapters.store.factory import create_record_store
from directory_api.api.routes import admin_router, health_router, submissions_router
from directory_api.core.config import Settings, settings as global_settings
from directory_api.core.cors import cors_middleware
from directory_api.core.dependencies import ServiceContainer
from directory_api.core.exception_handlers import setup_exception_handlers
from directory_api.core.logging import configure_logging
from directory_api.core.middleware import request_id_middleware
from directory_api.core.openapi import apply_openapi_customizations
from directory_api.core.rate_limit import create_rate_limiter
from directory_api.services.moderation_service import ModerationService
from directory_api.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

_UNSET = object()


def build_services(
    settings: Settings,
    *,
    store: AbstractRecordStore | None = None,
    rate_limiter: AbstractRateLimiter | None | object = _UNSET,
    notifier: AbstractNotifier | None = None,
) -> ServiceContainer:
    """Build the per-process collaborators from configuration.

    Any collaborator passed explicitly is used as-is; pass ``rate_limiter=None``
    to disable rate limiting regardless of configuration.
    """
    store = store or create_record_store(settings.store)
    if rate_limiter is _UNSET:
        rate_limiter = create_rate_limiter(store, settings.app)
    notifier = notifier or create_notifier(settings.notify)

    return ServiceContainer(
        store=store,
        rate_limiter=rate_limiter,  # type: ignore[arg-type]
        notifier=notifier,
        submissions=SubmissionService(store, rate_limiter, notifier),  # type: ignore[arg-type]
        moderation=ModerationService(
            store,
            default_limit=settings.app.list_default_limit,
            max_limit=settings.app.list_max_limit,
        ),
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: AbstractRecordStore | None = None,
    rate_limiter: AbstractRateLimiter | None | object = _UNSET,
    notifier: AbstractNotifier | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Settings to build from; defaults to the global instance.
        store: Optional record store overriding the configured backend.
        rate_limiter: Optional limiter overriding the configured policy.
        notifier: Optional notifier overriding the configured webhook.
        configure_logs: Configure root logging (disabled in some tests).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = settings or global_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)
        if cfg.app.debug:
            logging.getLogger().setLevel(logging.DEBUG)

    services = build_services(cfg, store=store, rate_limiter=rate_limiter, notifier=notifier)
    logger.info(
        "app.services_built",
        extra={
            "store_backend": services.store.backend_name,
            "rate_limit_policy": services.rate_limiter.policy_name if services.rate_limiter else "disabled",
            "notifier": type(services.notifier).__name__,
        },
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await services.aclose()

    app = FastAPI(
        title="Resource Directory Submissions API",
        description=(
            "Accepts public submissions of educational-research resources "
            "(validated, captcha-checked, rate limited per IP) and lets "
            "administrators list, search, approve and reject them. "
            "Admin endpoints require the X-Admin-Token header."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # Middleware (the last registered runs first)
    app.middleware("http")(cors_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(submissions_router)
    app.include_router(admin_router)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app
