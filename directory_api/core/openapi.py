"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Admin token security scheme (``X-Admin-Token``) applied to admin paths only

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from directory_api.core.auth import ADMIN_TOKEN_HEADER


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for admin auth (header ``X-Admin-Token``)
    - Marks operations under ``/admin`` as requiring it; public submission and
      health endpoints stay unauthenticated
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AdminTokenAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": ADMIN_TOKEN_HEADER,
                "description": "Shared admin secret for moderation endpoints.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Submissions",
                "description": "Public resource submission intake.",
            },
            {
                "name": "Admin",
                "description": "Moderation: list, search and approve/reject submissions.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path, methods in paths.items():
            if not path.startswith("/admin"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"AdminTokenAuth": []}]

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
