"""Chat webhook notifier (Slack incoming-webhook compatible)."""

from __future__ import annotations

import logging

import httpx

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.core.logging import hash_for_log
from directory_api.schemas.submission import SubmissionRecord

logger = logging.getLogger(__name__)


def truncate(text: str, max_chars: int) -> str:
    """Shorten text to max_chars, marking the cut with an ellipsis."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 1] + "…"


def format_summary(record: SubmissionRecord, *, description_preview_chars: int = 400) -> str:
    """Build the human-readable message posted for a new submission."""
    lines = [
        "New resource submission",
        f"• Name: {record.name}",
        f"• URL: {record.url}",
        f"• Description: {truncate(record.description, description_preview_chars) or '-'}",
        f"• Tags: {', '.join(record.tags) or '-'}",
        f"• Disciplines: {', '.join(record.disciplines) or '-'}",
        f"• Contact: {record.contact or '-'}",
        f"• Source page: {record.page or '-'}",
        f"• IP: {record.ip or '-'}",
    ]
    return "\n".join(lines)


class WebhookNotifier(AbstractNotifier):
    """POSTs ``{"text": summary}`` to a webhook URL.

    Delivery is best-effort: any failure to deliver (network error, bad URL,
    non-2xx answer) is logged and swallowed, and nothing is retried.
    """

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout_seconds: float = 5.0,
        description_preview_chars: int = 400,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._description_preview_chars = description_preview_chars
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def notify(self, record: SubmissionRecord) -> bool:
        payload = {
            "text": format_summary(record, description_preview_chars=self._description_preview_chars)
        }
        try:
            response = await self._client.post(self._webhook_url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning(
                "notify.failed",
                extra={
                    "record_id": record.id,
                    "reason": "transport_error",
                    "error_type": type(exc).__name__,
                },
            )
            return False
        except Exception as exc:
            # Malformed webhook URLs raise httpx.InvalidURL, outside HTTPError
            logger.warning(
                "notify.failed",
                extra={
                    "record_id": record.id,
                    "reason": "unexpected_error",
                    "error_type": type(exc).__name__,
                },
            )
            return False

        if not response.is_success:
            logger.warning(
                "notify.failed",
                extra={
                    "record_id": record.id,
                    "reason": "bad_status",
                    "http_status": response.status_code,
                },
            )
            return False

        logger.info("notify.sent", extra={"record_id": record.id})
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LogNotifier(AbstractNotifier):
    """Fallback when no webhook is configured: records the arrival in the log."""

    async def notify(self, record: SubmissionRecord) -> bool:
        logger.info(
            "notify.skipped",
            extra={
                "reason": "webhook_not_configured",
                "record_id": record.id,
                "record_name": record.name,
                "record_url": record.url,
                "ip_hash": hash_for_log(record.ip or "unknown"),
            },
        )
        return False
