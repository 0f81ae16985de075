"""Per-process service wiring exposed to routes as FastAPI dependencies.

Services are built once by the app factory and kept on ``app.state``;
routes receive them through Depends() instead of module-level globals.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.adapters.rate_limit.base import AbstractRateLimiter
from directory_api.adapters.store.base import AbstractRecordStore
from directory_api.services.moderation_service import ModerationService
from directory_api.services.submission_service import SubmissionService


@dataclass
class ServiceContainer:
    """Long-lived collaborators shared by all requests of one process."""

    store: AbstractRecordStore
    rate_limiter: AbstractRateLimiter | None
    notifier: AbstractNotifier
    submissions: SubmissionService
    moderation: ModerationService

    async def aclose(self) -> None:
        await self.notifier.aclose()
        await self.store.aclose()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_submission_service(request: Request) -> SubmissionService:
    return get_services(request).submissions


def get_moderation_service(request: Request) -> ModerationService:
    return get_services(request).moderation
