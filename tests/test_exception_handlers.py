"""Tests for global exception handlers.

Validates status codes, the error envelope and that a failing counter store
surfaces as 503 instead of a silent admission.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from notifier.core.errors import (
    AppError,
    RateLimitStoreError,
    RateLimitStoreFullError,
    ValidationAppError,
)
from notifier.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/invalid-policy")
        async def endpoint():
            raise ValidationAppError(
                code="invalid_rate_limit",
                message="limit must be >= 0",
                details={"limit": -1},
            )

        response = client.get("/invalid-policy")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_rate_limit"
        assert error["message"] == "limit must be >= 0"
        assert error["details"] == {"limit": -1}
        assert "request_id" in error

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/store-down")
        def endpoint():
            raise RateLimitStoreError(code="rate_limit_store_unavailable", message="store down")

        response = client.get("/store-down")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "rate_limit_store_unavailable"

    def test_store_full_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/store-full")
        def endpoint():
            raise RateLimitStoreFullError(
                code="rate_limit_store_full",
                message="full",
                details={"max_entries": 10},
            )

        response = client.get("/store-full")

        assert response.status_code == 503
        assert response.json()["error"]["details"] == {"max_entries": 10}

    def test_details_omitted_when_absent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/plain")
        async def endpoint():
            raise AppError(code="generic", message="generic failure")

        data = client.get("/plain").json()

        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/boom")
        async def endpoint():
            raise RuntimeError("counter table corrupted")

        response = client.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "internal_server_error"
        assert "corrupted" not in error["message"]

    def test_never_leaks_stack_trace(self):
        request = MagicMock()
        request.url.path = "/test"
        request.method = "POST"

        response = asyncio.run(general_exception_handler(request, ValueError("secret detail")))

        body = bytes(response.body).decode()
        assert response.status_code == 500
        assert json.loads(body)["error"]["code"] == "internal_server_error"
        assert "Traceback" not in body
        assert "ValueError" not in body
        assert "secret detail" not in body


def test_setup_registers_handlers_idempotently():
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
    assert Exception in app.exception_handlers
