"""
API Tests for the Skool Webhook

Endpoint tested:
- /api/webhooks/skool (POST, OPTIONS, other methods)

Runs the FastAPI app in-process with in-memory stores.

Run with: pytest tests/test_skool_webhook.py -v
"""

import re

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from server import app
from member_sync.dependencies import get_member_sync_service
from member_sync.service import MemberSyncService
from member_sync.memory_store import InMemoryProfileStore, InMemoryIdentityStore
from member_sync.models import SyncResult

WEBHOOK_URL = "/api/webhooks/skool"

EXPECTED_CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-headers": "Content-Type",
    "access-control-allow-methods": "GET, POST, OPTIONS",
    "content-type": "application/json",
}

# e.g. 2026-10-19T08:15:30.123Z
ISO_MILLIS_UTC = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


@pytest.fixture
def profiles():
    return InMemoryProfileStore()


@pytest.fixture
def identities():
    return InMemoryIdentityStore()


@pytest.fixture
def client(profiles, identities):
    app.dependency_overrides[get_member_sync_service] = lambda: MemberSyncService(profiles, identities)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_service():
    service = AsyncMock(spec=MemberSyncService)
    app.dependency_overrides[get_member_sync_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


def assert_cors_headers(response):
    for name, value in EXPECTED_CORS_HEADERS.items():
        assert response.headers.get(name) == value, name


class TestSyncScenarios:
    """End-to-end member sync through the webhook."""

    def test_first_post_creates_member(self, client, profiles, identities):
        response = client.post(WEBHOOK_URL, json={"email": "a@x.com", "name": "A"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "created"
        assert data["message"]
        assert ISO_MILLIS_UTC.match(data["timestamp"])

        profile = profiles.get(data["userId"])
        identity = identities.get(data["authUserId"])
        assert profile is not None
        assert identity is not None
        assert profile.firebase_auth_id == identity.id
        assert ISO_MILLIS_UTC.match(profile.skool_data["syncDate"])
        assert_cors_headers(response)

    def test_repeat_post_updates_member(self, client, identities):
        first = client.post(WEBHOOK_URL, json={"email": "a@x.com", "name": "A"}).json()
        claims_after_first = identities.get(first["authUserId"]).custom_claims

        response = client.post(WEBHOOK_URL, json={"email": "a@x.com", "name": "A"})

        assert response.status_code == 200
        second = response.json()
        assert second["action"] == "updated"
        assert second["userId"] == first["userId"]
        assert second["authUserId"] == first["authUserId"]

        claims_after_second = identities.get(second["authUserId"]).custom_claims
        assert claims_after_second == {"skoolMember": True, "skoolId": None, "isPaid": False}
        assert claims_after_first == {**claims_after_second, "needsPasswordReset": True}

    def test_alternate_email_key(self, client, profiles):
        response = client.post(WEBHOOK_URL, json={"user_email": "b@x.com", "user_id": "42"})

        assert response.status_code == 200
        profile = profiles.get(response.json()["userId"])
        assert profile.email == "b@x.com"
        assert profile.name == "b"
        assert profile.skool_id == "42"


class TestValidation:
    """Missing email and malformed bodies."""

    def test_missing_email_returns_400(self, mock_service):
        response = TestClient(app).post(WEBHOOK_URL, json={"name": "A"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Email is required"
        assert data["received_data"] == {"name": "A"}
        assert data["available_fields"] == ["name"]
        assert "timestamp" in data
        mock_service.reconcile.assert_not_called()
        assert_cors_headers(response)

    def test_empty_body_returns_400(self, mock_service):
        response = TestClient(app).post(WEBHOOK_URL, content=b"")

        assert response.status_code == 400
        mock_service.reconcile.assert_not_called()

    def test_malformed_body_returns_500(self, mock_service):
        response = TestClient(app).post(
            WEBHOOK_URL,
            content=b"{not json",
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"].startswith("Internal server error: ")
        mock_service.reconcile.assert_not_called()

    def test_non_string_email_returns_500(self, mock_service):
        response = TestClient(app).post(WEBHOOK_URL, json={"email": {"address": "a@x.com"}})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Internal server error: Email must be a string, got dict"
        assert_cors_headers(response)
        mock_service.reconcile.assert_not_called()


class TestSyncFailure:

    def test_failed_sync_returns_500(self, mock_service):
        mock_service.reconcile.return_value = SyncResult(success=False, error="permission denied")

        response = TestClient(app).post(WEBHOOK_URL, json={"email": "a@x.com"})

        assert response.status_code == 500
        data = response.json()
        assert data == {
            "success": False,
            "error": "Firebase sync failed: permission denied",
            "timestamp": data["timestamp"],
        }
        assert_cors_headers(response)

    def test_unexpected_exception_returns_500(self, mock_service):
        mock_service.reconcile.side_effect = RuntimeError("boom")

        response = TestClient(app).post(WEBHOOK_URL, json={"email": "a@x.com"})

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error: boom"


class TestMethodDispatch:
    """OPTIONS preflight and unsupported methods."""

    def test_options_returns_empty_200(self, mock_service):
        response = TestClient(app).options(WEBHOOK_URL)

        assert response.status_code == 200
        assert response.content == b""
        assert_cors_headers(response)
        mock_service.reconcile.assert_not_called()

    def test_options_ignores_payload(self, mock_service):
        response = TestClient(app).request("OPTIONS", WEBHOOK_URL, content=b'{"email": "a@x.com"}')

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
    def test_other_methods_return_405(self, mock_service, method):
        response = TestClient(app).request(method, WEBHOOK_URL)

        assert response.status_code == 405
        data = response.json()
        assert data["error"] == "Method not allowed. Use POST."
        assert "timestamp" in data
        assert_cors_headers(response)
        mock_service.reconcile.assert_not_called()

    @pytest.mark.parametrize("method", ["TRACE", "PURGE", "HEAD"])
    def test_unrouted_methods_return_json_405(self, mock_service, method):
        """Verbs outside the route's method list still get the webhook's 405, not the framework default."""
        response = TestClient(app).request(method, WEBHOOK_URL)

        assert response.status_code == 405
        assert_cors_headers(response)
        if method != "HEAD":
            data = response.json()
            assert data["error"] == "Method not allowed. Use POST."
            assert "detail" not in data
            assert ISO_MILLIS_UTC.match(data["timestamp"])
        mock_service.reconcile.assert_not_called()

    def test_unknown_path_keeps_default_404(self):
        response = TestClient(app).get("/api/webhooks/unknown")

        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found"}


class TestHealth:

    def test_liveness(self):
        response = TestClient(app).get("/api/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"
