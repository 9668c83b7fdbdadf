"""Tests for the health endpoint.

The health endpoint:
- Does not require authentication
- Makes no upstream calls
- Reports 503 "degraded" when a required credential is missing
"""

import pytest
from fastapi.testclient import TestClient

from clipper.config import clear_settings_cache


class TestHealthEndpoint:
    """Tests for GET /health"""

    def test_health_returns_200(self, client: TestClient):
        """Health endpoint returns 200 OK when configured."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["environment"] == "test"
        assert data["version"] == "2.0.0"
        assert data["uptime_s"] >= 0
        assert data["services"] == {
            "upstream_api": True,
            "preview_api": True,
            "session_secret": True,
        }

    def test_health_content_type_is_json(self, client: TestClient):
        response = client.get("/health")

        assert response.headers["content-type"] == "application/json"

    @pytest.mark.parametrize("missing", ["UPSTREAM_SERVICE_TOKEN", "SESSION_SIGNING_SECRET"])
    def test_missing_credential_is_degraded(self, client: TestClient, monkeypatch, missing):
        monkeypatch.delenv(missing)
        clear_settings_cache()

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_missing_preview_key_still_healthy(self, client: TestClient, monkeypatch):
        monkeypatch.delenv("PREVIEW_API_KEY")
        clear_settings_cache()

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["services"]["preview_api"] is False
