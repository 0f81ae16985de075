from __future__ import annotations

from fastapi import APIRouter, Depends

from directory_api.core.dependencies import ServiceContainer, get_services

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(services: ServiceContainer = Depends(get_services)) -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational,
    along with the active record store backend. Used by load balancers and
    monitoring systems; it does not query the store.

    Returns:
        dict: ``{"status": "ok", "store": "<backend>"}``.
    """

    return {"status": "ok", "store": services.store.backend_name}
