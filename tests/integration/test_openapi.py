"""
Integration tests for OpenAPI documentation.

Verifies OpenAPI schema is correctly generated for all endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client for the application (lifespan not started)."""
    return TestClient(app)


@pytest.fixture
def schema(client: TestClient) -> dict:
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_openapi_title_and_description(self, schema: dict) -> None:
        assert schema["info"]["title"] == "promptmarket-approvals"
        assert "Approval" in schema["info"]["description"]
        assert schema["info"]["version"] == "0.1.0"

    @pytest.mark.parametrize(
        ("path", "method"),
        [
            ("/v1/register", "post"),
            ("/v1/approve-user-by-email", "get"),
            ("/v1/reject-user-by-email", "get"),
            ("/v1/verify-email", "post"),
            ("/v1/resend-verification", "post"),
            ("/v1/forgot-password", "post"),
            ("/v1/reset-password", "post"),
            ("/v1/admin/pending-users", "get"),
            ("/v1/admin/pending-users/{pending_id}", "get"),
            ("/v1/admin/pending-users/{pending_id}", "delete"),
            ("/v1/admin/pending-users/{pending_id}/approve", "post"),
            ("/v1/admin/pending-users/{pending_id}/reject", "post"),
            ("/v1/admin/pending-users/{pending_id}/resend", "post"),
            ("/v1/admin/settings/approval-mode", "put"),
            ("/v1/admin/settings/notification-email", "put"),
            ("/health", "get"),
        ],
    )
    def test_endpoint_documented(self, schema: dict, path: str, method: str) -> None:
        assert method in schema["paths"][path]

    def test_register_summary(self, schema: dict) -> None:
        assert schema["paths"]["/v1/register"]["post"]["summary"] == "Register a new user"

    def test_register_request_schema(self, schema: dict) -> None:
        props = schema["components"]["schemas"]["RegisterRequest"]["properties"]
        assert set(props) == {"username", "email", "password"}

    def test_pending_user_schema_has_no_secrets(self, schema: dict) -> None:
        props = schema["components"]["schemas"]["PendingUserResponse"]["properties"]
        assert "status" in props
        assert not {"password_hash", "approval_token", "reject_token"} & set(props)

    def test_tags_defined(self, schema: dict) -> None:
        tag_names = [tag["name"] for tag in schema.get("tags", [])]
        assert tag_names == ["v1", "admin"]

    def test_admin_endpoints_tagged_admin(self, schema: dict) -> None:
        operation = schema["paths"]["/v1/admin/pending-users"]["get"]
        assert "admin" in operation["tags"]

    def test_admin_endpoints_use_http_basic(self, schema: dict) -> None:
        operation = schema["paths"]["/v1/admin/pending-users"]["get"]
        assert operation["security"] == [{"HTTPBasic": []}]


class TestSwaggerUI:
    """Tests for Swagger UI availability."""

    def test_docs_endpoint_accessible(self, client: TestClient) -> None:
        response = client.get("/docs")
        assert response.status_code == 200
        assert "swagger" in response.text.lower()

    def test_redoc_endpoint_accessible(self, client: TestClient) -> None:
        response = client.get("/redoc")
        assert response.status_code == 200
        assert "redoc" in response.text.lower()
