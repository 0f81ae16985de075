"""Factory for the configured notifier."""

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.adapters.notify.webhook import LogNotifier, WebhookNotifier
from directory_api.core.config import NotifySettings, settings


def create_notifier(notify_settings: NotifySettings | None = None) -> AbstractNotifier:
    """Return a webhook notifier when a URL is configured, else a log-only one."""
    cfg = notify_settings or settings.notify

    if cfg.webhook_url:
        return WebhookNotifier(
            cfg.webhook_url,
            timeout_seconds=cfg.timeout_seconds,
            description_preview_chars=cfg.description_preview_chars,
        )
    return LogNotifier()
