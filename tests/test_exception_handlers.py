"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from directory_api.core.errors import (
    AppError,
    AuthenticationAppError,
    DuplicateIdError,
    ForbiddenAppError,
    InternalAppError,
    NotFoundAppError,
    RateLimitAppError,
    StoreUnavailableError,
    UpstreamAppError,
    ValidationAppError,
)
from directory_api.core.exception_handlers import setup_exception_handlers, status_code_for


def _make_request(path: str, *, method: str = "GET", request_id: str | None = None) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "state": {},
    }
    if request_id is not None:
        scope["state"]["request_id"] = request_id
    return Request(scope)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify ValidationAppError returns HTTP 400."""
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_name",
                message="Invalid name"
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "invalid_name"
        assert data["error"] == "Invalid name"
        assert "request_id" in data

    def test_details_are_never_returned(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify structured details stay in the logs."""
        @app_with_handlers.get("/test-details")
        async def test_endpoint():
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Record store is unavailable",
                details={"backend": "sql", "hint": "connection refused on db:5432"},
            )

        response = client.get("/test-details")

        assert response.status_code == 500
        assert set(response.json()) == {"error", "code", "request_id"}
        assert "db:5432" not in response.text

    def test_authentication_error_returns_401(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify AuthenticationAppError returns HTTP 401 Unauthorized."""
        @app_with_handlers.get("/test-auth")
        async def test_endpoint():
            raise AuthenticationAppError(
                code="unauthorized",
                message="Unauthorized"
            )

        response = client.get("/test-auth")

        assert response.status_code == 401
        data = response.json()
        assert data["code"] == "unauthorized"

    def test_rate_limit_error_sets_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise RateLimitAppError(
                code="rate_limited",
                message="Too many submissions. Try again later.",
                details={"limit": 5, "retry_after": 120},
            )

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify error responses have consistent JSON structure."""
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        response = client.get("/test-format")
        data = response.json()

        # Required fields always present
        assert set(data) == {"error", "code", "request_id"}
        assert isinstance(data["error"], str)
        assert data["error"] == "test"
        assert data["code"] == "test"


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (ValidationAppError(code="invalid_cursor", message="Invalid cursor"), 400),
        (AuthenticationAppError(code="unauthorized", message="Unauthorized"), 401),
        (ForbiddenAppError(code="forbidden_origin", message="Forbidden origin"), 403),
        (NotFoundAppError(code="not_found", message="Not found"), 404),
        (RateLimitAppError(code="rate_limited", message="Slow down"), 429),
        (UpstreamAppError(code="kv_get_failed", message="KV get failed"), 502),
        (InternalAppError(code="store_insert_failed", message="Could not save"), 500),
        (StoreUnavailableError(code="store_unavailable", message="down"), 500),
        (DuplicateIdError(code="duplicate_id", message="dup"), 500),
        (AppError(code="generic", message="generic"), 400),
    ],
)
def test_status_code_mapping(error: AppError, expected_status: int):
    assert status_code_for(error) == expected_status


class TestFrameworkErrors:
    def test_unknown_route_uses_error_shape(self, client: TestClient):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_wrong_method_uses_error_shape(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.post("/only-post")
        async def test_endpoint():
            return {"ok": True}

        response = client.get("/only-post")

        assert response.status_code == 405
        assert response.json()["code"] == "method_not_allowed"

    def test_request_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/typed")
        async def test_endpoint(count: int):
            return {"count": count}

        response = client.get("/typed", params={"count": "many"})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"
        assert "many" not in response.text


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        """Verify fallback exception handler is registered."""
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        from directory_api.core.exception_handlers import general_exception_handler

        request = _make_request("/test", request_id="req-500")

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        # Verify response structure
        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["code"] == "internal_server_error"
        # Original error message should NOT be in response
        assert "database connection" not in data["error"]
        assert data["request_id"] == "req-500"

    def test_general_exception_handler_never_leaks_stack_trace(self):
        """Verify stack traces are never included in response."""
        from directory_api.core.exception_handlers import general_exception_handler

        request = _make_request("/test")

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        # No traceback indicators
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        """Verify setup_exception_handlers properly registers handlers."""
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        """Verify calling setup_exception_handlers multiple times is safe."""
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
