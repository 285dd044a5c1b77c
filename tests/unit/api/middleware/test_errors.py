"""
Tests for Error Translation

Application exceptions map to their status and message, unknown exceptions
become a generic 500, and framework errors share the same envelope.
"""

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from src.api.middleware.errors import (
    ErrorTranslationMiddleware,
    format_validation_errors,
    register_exception_handlers,
)
from src.core.exceptions import (
    BadRequestError,
    ClientIdentityError,
    NotFoundError,
    UnauthorizedError,
)


class Payload(BaseModel):
    title: str = Field(..., min_length=3)
    priority: int = Field(default=1, ge=1, le=5)


@pytest.fixture
def error_client() -> TestClient:
    app = FastAPI()
    app.add_middleware(ErrorTranslationMiddleware)
    register_exception_handlers(app)

    @app.get("/not-found")
    async def not_found():
        raise NotFoundError("Task not found")

    @app.get("/bad-request")
    async def bad_request():
        raise BadRequestError(
            "Validation failed",
            errors=[{"path": "title", "message": "too short"}],
        )

    @app.get("/unauthorized")
    async def unauthorized():
        raise UnauthorizedError("Unauthorized access")

    @app.get("/client-identity")
    async def client_identity():
        raise ClientIdentityError()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    @app.post("/payload")
    async def payload(body: Payload):
        return body

    return TestClient(app)


class TestErrorTranslationMiddleware:
    def test_application_error_maps_to_its_status(self, error_client):
        response = error_client.get("/not-found")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {
            "success": False,
            "message": "Task not found",
            "errors": None,
        }

    def test_field_errors_are_preserved(self, error_client):
        response = error_client.get("/bad-request")

        assert response.status_code == 400
        assert response.json()["errors"] == [{"path": "title", "message": "too short"}]

    def test_unauthorized_error(self, error_client):
        response = error_client.get("/unauthorized")

        assert response.status_code == 401
        assert response.json()["message"] == "Unauthorized access"

    def test_server_side_application_error(self, error_client):
        response = error_client.get("/client-identity")

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"

    def test_unknown_exception_is_generic_500(self, error_client):
        response = error_client.get("/boom")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "errors": None,
        }
        assert "hunter2" not in response.text


class TestFrameworkErrors:
    def test_unknown_route_uses_envelope(self, error_client):
        response = error_client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found", "errors": None}

    def test_wrong_method_uses_envelope(self, error_client):
        response = error_client.delete("/not-found")

        assert response.status_code == 405
        assert response.json()["success"] is False

    def test_malformed_json_is_400(self, error_client):
        response = error_client.post(
            "/payload",
            content=b'{"title": ',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid JSON", "errors": None}

    def test_schema_violation_lists_fields(self, error_client):
        response = error_client.post("/payload", json={"title": "ab", "priority": 9})

        body = response.json()
        assert response.status_code == 400
        assert body["message"] == "Validation failed"
        assert {e["path"] for e in body["errors"]} == {"title", "priority"}


class TestFormatValidationErrors:
    def test_location_prefix_is_dropped(self):
        errors = [
            {"loc": ("body", "title"), "msg": "String should have at least 3 characters"},
            {"loc": ("query", "limit"), "msg": "Input should be less than or equal to 100"},
        ]

        assert format_validation_errors(errors) == [
            {"path": "title", "message": "String should have at least 3 characters"},
            {"path": "limit", "message": "Input should be less than or equal to 100"},
        ]

    def test_nested_location_is_dotted(self):
        errors = [{"loc": ("body", "items", 0, "name"), "msg": "Field required"}]

        assert format_validation_errors(errors)[0]["path"] == "items.0.name"

    def test_whole_body_error(self):
        errors = [{"loc": ("body",), "msg": "Field required"}]

        assert format_validation_errors(errors)[0]["path"] == "body"
