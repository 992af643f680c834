"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratelimit_service.core.errors import (
    AppError,
    StoreInconsistentError,
    StoreUnavailableError,
    ValidationAppError,
)
from ratelimit_service.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_input",
                message="identity must be a non-empty string",
                details={"field": "identity"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_input"
        assert data["error"]["details"] == {"field": "identity"}
        assert "request_id" in data["error"]

    def test_store_unavailable_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-unavailable")
        async def test_endpoint():
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Rate limit store timed out",
                details={"operation": "record_and_count", "timeout_seconds": 0.5},
            )

        response = client.get("/test-unavailable")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        assert response.json()["error"]["details"]["operation"] == "record_and_count"

    def test_store_inconsistent_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-inconsistent")
        async def test_endpoint():
            raise StoreInconsistentError(code="store_inconsistent", message="bad count")

        response = client.get("/test-inconsistent")

        assert response.status_code == 500
        assert "Retry-After" not in response.headers

    def test_details_omitted_when_empty(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_hides_internals(self):
        request = AsyncMock()
        request.url.path = "/v1/limits/check"
        request.method = "POST"

        exc = RuntimeError("redis://:hunter2@cache:6379 refused")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "hunter2" not in json.dumps(data)
        assert "RuntimeError" not in json.dumps(data)


def test_app_error_str_is_message():
    error = AppError(code="x", message="human readable")

    assert str(error) == "human readable"


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
