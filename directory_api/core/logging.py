"""Structured logging for the submissions API.

Every log line is one JSON object carrying the event name as ``message``,
the request id of the request being served, and the ``extra`` fields of the
call. Before anything is written:

- credentials and submitter contact details are replaced by ``[REDACTED]``
- submitter IPs are replaced by a short SHA-256 digest, so abuse from one
  address can still be correlated without storing the address in logs
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from directory_api.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "admin_token",
        "x-admin-token",
        "app_admin_token",
        "authorization",
        "token",
        "api_token",
        "kv_api_token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
        "webhook_url",
        "database_url",
        "contact",
    }
)

# Values logged as a digest instead of verbatim
PSEUDONYMIZED_KEYS_DEFAULT: frozenset[str] = frozenset({"ip", "client_ip", "x-forwarded-for"})

# Standard LogRecord attributes, never treated as structured extras
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_for_log(value: str) -> str:
    """Short, stable digest of an identifying value (IP address, limiter key)."""

    return hashlib.sha256(value.encode()).hexdigest()[:16]


class _Scrubber:
    """Applies redaction and pseudonymization to (possibly nested) extras."""

    def __init__(self, sensitive_keys: Iterable[str], pseudonymized_keys: Iterable[str]) -> None:
        self.sensitive_keys = {key.lower() for key in sensitive_keys}
        self.pseudonymized_keys = {key.lower() for key in pseudonymized_keys}

    def field(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if lowered in self.sensitive_keys:
            return REDACTED
        if lowered in self.pseudonymized_keys and isinstance(value, str) and value:
            return hash_for_log(value)
        return self.value(value)

    def value(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {k: self.field(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.value(v) for v in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        return {
            key: self.field(key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub structured extras in place so every handler sees safe values."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        pseudonymized_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self._scrubber = _Scrubber(
            sensitive_keys if sensitive_keys is not None else SENSITIVE_KEYS_DEFAULT,
            pseudonymized_keys if pseudonymized_keys is not None else PSEUDONYMIZED_KEYS_DEFAULT,
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if not getattr(record, "_scrubbed", False):
            for key, value in self._scrubber.extras(record).items():
                setattr(record, key, value)
            record._scrubbed = True
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, event and extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        pseudonymized_keys: Iterable[str] | None = None,
        ensure_ascii: bool = False,
    ) -> None:
        super().__init__()
        self._scrubber = _Scrubber(
            sensitive_keys if sensitive_keys is not None else SENSITIVE_KEYS_DEFAULT,
            pseudonymized_keys if pseudonymized_keys is not None else PSEUDONYMIZED_KEYS_DEFAULT,
        )
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        if getattr(record, "_scrubbed", False):
            payload.update(
                {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS and not k.startswith("_")}
            )
        else:
            payload.update(self._scrubber.extras(record))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the JSON (or plain) handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log
    level = getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # httpx logs every request URL at INFO, which includes KV keys
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
