"""Notifier adapters - best-effort forwarding of new submissions."""

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.adapters.notify.factory import create_notifier
from directory_api.adapters.notify.webhook import LogNotifier, WebhookNotifier

__all__ = [
    "AbstractNotifier",
    "LogNotifier",
    "WebhookNotifier",
    "create_notifier",
]
