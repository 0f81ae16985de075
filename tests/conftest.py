"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before anything imports the settings module.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("APP_RATE_LIMIT_POLICY", "memory")
os.environ.setdefault("STORE_BACKEND", "sql")
os.environ.setdefault("STORE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from directory_api.adapters.notify.base import AbstractNotifier
from directory_api.adapters.rate_limit.in_memory import InMemoryRateLimiter
from directory_api.adapters.store.kv import KvRecordStore
from directory_api.adapters.store.sql import SqlRecordStore
from directory_api.core.app_factory import create_app
from directory_api.schemas.submission import SubmissionRecord, SubmissionStatus

ADMIN_TOKEN = "test-admin-token"
BASE_TS = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class RecordingNotifier(AbstractNotifier):
    """Notifier double remembering every record it was asked to announce."""

    def __init__(self, result: bool = True) -> None:
        self.records: list[SubmissionRecord] = []
        self.result = result

    async def notify(self, record: SubmissionRecord) -> bool:
        self.records.append(record)
        return self.result


class FakeClock:
    """Mutable UNIX-seconds clock for rate limiter tests."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKV:
    """In-memory stand-in for the Cloudflare KV REST API (httpx.MockTransport handler).

    Key listing is paginated ``keys_page_size`` at a time so tests exercise
    the list cursor loop.
    """

    def __init__(self, keys_page_size: int = 2) -> None:
        self.values: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.keys_page_size = keys_page_size
        self.fail_status: int | None = None
        self.fail_methods: set[str] = {"GET", "PUT"}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None and request.method in self.fail_methods:
            return httpx.Response(self.fail_status, json={"success": False, "errors": [{"code": 10000}]})

        path = request.url.path
        if path.endswith("/keys"):
            prefix = request.url.params.get("prefix", "")
            names = sorted(name for name in self.values if name.startswith(prefix))
            start = int(request.url.params.get("cursor") or 0)
            end = start + self.keys_page_size
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "result": [{"name": name} for name in names[start:end]],
                    "result_info": {"count": len(names[start:end]), "cursor": str(end) if end < len(names) else ""},
                },
            )

        key = path.split("/values/", 1)[1]
        if request.method == "GET":
            if key not in self.values:
                return httpx.Response(404, json={"success": False, "errors": [{"code": 10009}]})
            return httpx.Response(200, content=self.values[key])
        if request.method == "PUT":
            self.values[key] = request.content
            return httpx.Response(200, json={"success": True})
        return httpx.Response(405)


def make_record(
    record_id: str,
    *,
    ts: datetime = BASE_TS,
    ip: str = "203.0.113.7",
    name: str | None = None,
    **overrides: Any,
) -> SubmissionRecord:
    data: dict[str, Any] = {
        "id": record_id,
        "name": name or f"Resource {record_id}",
        "url": f"https://example.org/{record_id}",
        "description": "An open dataset of classroom observations",
        "tags": ["dataset"],
        "disciplines": ["education"],
        "contact": "",
        "page": "https://directory.example.org/",
        "ip": ip,
        "user_agent": "pytest",
        "ts": ts,
        "status": SubmissionStatus.PENDING,
    }
    data.update(overrides)
    return SubmissionRecord(**data)


@pytest.fixture
def sql_store(tmp_path) -> SqlRecordStore:
    """SQLite-backed relational store in a per-test database file."""
    return SqlRecordStore(f"sqlite+aiosqlite:///{tmp_path / 'submissions.db'}", poolclass=NullPool)


@pytest.fixture
def fake_kv() -> FakeKV:
    return FakeKV()


@pytest.fixture
def kv_store(fake_kv: FakeKV) -> KvRecordStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_kv))
    return KvRecordStore(
        account_id="acc-123",
        namespace_id="ns-456",
        api_token="kv-token",
        client=client,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock: FakeClock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(limit=3, window_seconds=3600, clock=clock)


@pytest.fixture
def client(sql_store, rate_limiter, notifier) -> TestClient:
    """Test client over an app with a SQLite store, a 3-per-hour limiter and a recording notifier."""
    app = create_app(
        store=sql_store,
        rate_limiter=rate_limiter,
        notifier=notifier,
        configure_logs=False,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture
def valid_payload() -> dict[str, Any]:
    return {
        "name": "Open Classroom Observation Dataset",
        "url": "https://data.example.edu/observations",
        "description": "Coded video observations of 200 K-12 lessons.",
        "tags": ["dataset", "video"],
        "disciplines": ["education", "psychology"],
        "contact": "curator@example.edu",
        "page": "https://directory.example.org/datasets",
        "captcha": {"a": 3, "b": 4, "op": "+", "answer": 7},
    }


@pytest.fixture
def payload_factory(valid_payload) -> Callable[..., dict[str, Any]]:
    """Build a valid payload with selected fields replaced (None removes a field)."""

    def _make(**overrides: Any) -> dict[str, Any]:
        payload = dict(valid_payload)
        for key, value in overrides.items():
            if value is None:
                payload.pop(key, None)
            else:
                payload[key] = value
        return payload

    return _make


def timestamps(count: int, *, step: timedelta = timedelta(minutes=1)) -> list[datetime]:
    return [BASE_TS + step * i for i in range(count)]
