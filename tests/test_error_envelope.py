"""Tests for the error envelope format and exception handlers.

Error responses share one shape:
{
    "status": "error",
    "error": {
        "code": "<stable_code>",
        "message": "<human_readable>",
        "details": <object|array|null>
    },
    "request_id": "<uuid>"
}
"""

import json

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from jobboard import app as app_module
from jobboard.api.error_handling import _STATUS_TO_CODE, _error_code_for_status, _error_response
from jobboard.api.schemas import Envelope, ErrorBody
from jobboard.service.errors import (
    DuplicateEmailError,
    InvalidTokenError,
    ServiceError,
    TokenExpiredError,
)


@pytest.fixture
def client():
    return TestClient(app_module.app)


class TestErrorBody:
    """Tests for the ErrorBody model."""

    def test_required_fields(self):
        error = ErrorBody(code="unauthorized", message="Access denied. No token provided.")
        assert error.code == "unauthorized"
        assert error.details is None

    @pytest.mark.parametrize(
        "code", ["invalid_token", "token_not_found", "token_expired", "token_mismatch"]
    )
    def test_token_codes_accepted(self, code):
        assert ErrorBody(code=code, message="x").code == code

    def test_unknown_code_rejected(self):
        with pytest.raises(ValidationError):
            ErrorBody(code="teapot", message="x")

    def test_missing_message_rejected(self):
        with pytest.raises(ValidationError):
            ErrorBody(code="not_found")

    def test_list_details(self):
        error = ErrorBody(
            code="validation_error",
            message="Request validation failed",
            details=[{"field": "email"}, {"field": "password"}],
        )
        assert len(error.details) == 2


class TestEnvelope:
    """Tests for the Envelope model."""

    def test_request_id_auto_generated(self):
        first = Envelope(status="ok")
        second = Envelope(status="ok")
        assert first.request_id and first.request_id != second.request_id

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            Envelope(status="pending")

    def test_error_serialization(self):
        envelope = Envelope(status="error", error=ErrorBody(code="conflict", message="dup"))
        dumped = envelope.model_dump()

        assert dumped["status"] == "error"
        assert dumped["data"] is None
        assert dumped["error"] == {"code": "conflict", "message": "dup", "details": None}


class TestErrorCodeMapping:
    """Tests for HTTP status to stable code mapping."""

    @pytest.mark.parametrize(
        "status,code",
        [
            (400, "validation_error"),
            (401, "unauthorized"),
            (403, "forbidden"),
            (404, "not_found"),
            (409, "conflict"),
            (413, "validation_error"),
            (500, "server_error"),
        ],
    )
    def test_known_statuses(self, status, code):
        assert _error_code_for_status(status) == code

    def test_unknown_status_defaults_to_server_error(self):
        assert _error_code_for_status(418) == "server_error"

    def test_mapped_codes_are_valid(self):
        for code in _STATUS_TO_CODE.values():
            ErrorBody(code=code, message="x")


class TestErrorResponseFactory:
    """Tests for ``_error_response``."""

    def test_basic(self):
        response = _error_response(404, "Job not found")
        body = json.loads(response.body)

        assert response.status_code == 404
        assert body["status"] == "error"
        assert body["error"]["code"] == "not_found"
        assert body["request_id"]

    def test_custom_code(self):
        response = _error_response(403, "Invalid token.", code="invalid_token")
        assert json.loads(response.body)["error"]["code"] == "invalid_token"


class TestServiceErrors:
    """Tests for service exception defaults."""

    def test_defaults(self):
        assert ServiceError("x").status_code == 400
        assert DuplicateEmailError("x").status_code == 409
        assert TokenExpiredError("x").error_code == "token_expired"

    def test_invalid_token_carries_reason(self):
        exc = InvalidTokenError(reason="expired")
        assert exc.status_code == 403
        assert exc.detail == {"reason": "expired"}


class TestHandlers:
    """End-to-end checks that every failure path renders the envelope."""

    def test_unknown_route_is_enveloped(self, client):
        response = client.get("/api/does-not-exist")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "error"
        assert body["error"]["code"] == "not_found"
        assert body["error"]["message"] == "Not Found"
        assert body["error"]["details"] is None

    def test_wrong_method_is_enveloped(self, client):
        response = client.delete("/api/auth/login")

        assert response.status_code == 405
        assert response.json()["error"]["code"] == "validation_error"
        assert response.json()["error"]["message"] == "Method Not Allowed"

    def test_malformed_json_is_400(self, client):
        response = client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_service_error_details_pass_through(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer a.b.c"})

        assert response.status_code == 403
        assert response.json()["error"]["details"]["reason"]

    def test_request_id_header_echoed(self, client):
        response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["Cache-Control"].startswith("no-store")


class TestHealth:
    """Tests for the health check."""

    def test_healthz(self, client):
        body = client.get("/healthz").json()

        assert body["status"] == "healthy"
        assert body["admin_bootstrapped"] is True
        assert body["version"] == app_module.__version__
