"""Factory for the configured record store backend."""

from directory_api.adapters.store.base import AbstractRecordStore
from directory_api.adapters.store.kv import KvRecordStore
from directory_api.adapters.store.sql import SqlRecordStore
from directory_api.core.config import StoreSettings, settings
from directory_api.core.errors import ValidationAppError


def create_record_store(store_settings: StoreSettings | None = None) -> AbstractRecordStore:
    """Instantiate the record store selected by configuration.

    Validates backend-specific requirements and routes to the matching
    implementation. Only one backend is active per process.

    Args:
        store_settings: Optional store settings; defaults to global settings.

    Returns:
        AbstractRecordStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or under-configured.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "sql":
        if not cfg.database_url:
            raise ValidationAppError(
                code="store_missing_database_url",
                message="SQL store requires STORE_DATABASE_URL environment variable",
            )
        return SqlRecordStore(cfg.database_url, echo=cfg.echo)

    if backend == "kv":
        missing = [
            name
            for name, value in (
                ("STORE_KV_ACCOUNT_ID", cfg.kv_account_id),
                ("STORE_KV_NAMESPACE_ID", cfg.kv_namespace_id),
                ("STORE_KV_API_TOKEN", cfg.kv_api_token),
            )
            if not value
        ]
        if missing:
            raise ValidationAppError(
                code="store_kv_not_configured",
                message=f"KV store requires {', '.join(missing)}",
            )
        return KvRecordStore(
            account_id=cfg.kv_account_id,
            namespace_id=cfg.kv_namespace_id,
            api_token=cfg.kv_api_token,
            prefix=cfg.kv_prefix,
            base_url=cfg.kv_api_base_url,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: sql, kv",
    )
