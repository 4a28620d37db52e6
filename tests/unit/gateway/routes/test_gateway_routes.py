"""Unit tests for the gateway HTTP endpoints."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from gateway.config import GatewaySettings
from gateway.main import create_app


@pytest.fixture
def client(test_settings: GatewaySettings):
    """Create a test client over the temp configuration."""
    with TestClient(create_app(test_settings)) as client:
        yield client


def chat(client: TestClient, ip: str = "10.0.0.1", **body):
    body.setdefault("message", "What is THC?")
    return client.post("/api/chat", json=body, headers={"X-Forwarded-For": ip})


class TestHealth:
    """Tests for health endpoints."""

    def test_health(self, client: TestClient) -> None:
        """Test /health returns ok."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_ready(self, client: TestClient) -> None:
        """Test /ready reports the loaded snapshot."""
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "agents": 13, "tiers": 6}


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_keyword_routing(self, client: TestClient) -> None:
        """Test a free plan THC question reaches the science agent."""
        response = chat(client, plan="free", username="ana")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["agent"] == "science"
        assert data["plan"] == "free"
        assert data["planName"] == "Free"
        assert "Science" in data["response"]
        assert data["usage"]["total_tokens"] > 0

    def test_rate_limit_headers(self, client: TestClient) -> None:
        """Test chat responses carry rate limit headers."""
        response = chat(client)

        assert response.headers["X-RateLimit-Limit"] == "50"
        assert response.headers["X-RateLimit-Remaining"] == "49"
        assert int(response.headers["X-RateLimit-Reset"]) > 0

    def test_51st_request_rejected(self, client: TestClient) -> None:
        """Test the 51st request inside the window gets 429."""
        for _ in range(50):
            assert chat(client, ip="10.0.0.9").status_code == 200

        response = chat(client, ip="10.0.0.9")

        assert response.status_code == 429
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "RATE_LIMIT_EXCEEDED"
        assert data["retryAfter"] > 0
        assert response.headers["Retry-After"] == str(data["retryAfter"])
        assert chat(client, ip="10.0.0.10").status_code == 200

    def test_missing_message(self, client: TestClient) -> None:
        """Test a body without a message is a 400 validation error."""
        response = client.post("/api/chat", json={"plan": "free"})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "INPUT_VALIDATION_ERROR"
        assert data["details"][0]["field"] == "message"

    def test_message_too_long(self, client: TestClient) -> None:
        """Test over-long messages are rejected."""
        response = chat(client, message="x" * 1001, plan="free")

        assert response.status_code == 400
        assert "1000" in response.json()["message"]

    def test_message_over_global_cap(self, client: TestClient) -> None:
        """Test 2001 characters are rejected even on the operator plan."""
        response = chat(client, message="x" * 2001, plan="operator")

        assert response.status_code == 400
        assert response.json()["code"] == "INPUT_VALIDATION_ERROR"

    def test_unknown_agent(self, client: TestClient) -> None:
        """Test unknown explicit agents give 400."""
        response = chat(client, agent="wizard")

        assert response.status_code == 400
        assert response.json()["code"] == "UNKNOWN_AGENT"

    def test_restricted_agent(self, client: TestClient) -> None:
        """Test standard plan requesting the admin-only agent gets 403."""
        response = chat(client, plan="standard", agent="editor_agent")

        assert response.status_code == 403
        data = response.json()
        assert data["code"] == "PLAN_ACCESS_DENIED"
        assert data["allowedPlans"] == ["admin"]

    def test_bad_plan_and_username_recovered(self, client: TestClient) -> None:
        """Test non-string plan and username values fall back to defaults."""
        response = chat(client, plan=42, username=["x"])

        assert response.status_code == 200
        assert response.json()["plan"] == "free"


class TestAdminEndpoints:
    """Tests for the admin command endpoints."""

    def test_command_applied(self, client: TestClient, config_dir) -> None:
        """Test an admin command updates the tier document."""
        response = client.post(
            "/api/admin/command",
            json={"command": "enable dark_mode for free tier", "plan": "admin"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["changes"][0]["field"] == "features.dark_mode"
        doc = json.loads((config_dir / "tier-free.json").read_text(encoding="utf-8"))
        assert doc["features"]["dark_mode"] is True

    def test_non_admin_forbidden(self, client: TestClient) -> None:
        """Test non-admin plans cannot run commands."""
        response = client.post(
            "/api/admin/command",
            json={"command": "enable dark_mode for free tier", "plan": "operator"},
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_unparseable_command(self, client: TestClient) -> None:
        """Test unrecognized commands give 400 with the failure body."""
        response = client.post(
            "/api/admin/command",
            json={"command": "do a barrel roll", "plan": "admin"},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_empty_command(self, client: TestClient) -> None:
        """Test empty commands fail validation."""
        response = client.post("/api/admin/command", json={"command": "", "plan": "admin"})
        assert response.status_code == 400

    def test_admin_token_required(self, test_settings: GatewaySettings) -> None:
        """Test a configured admin token must be presented."""
        settings = test_settings.model_copy(update={"admin_token": "s3cret"})
        body = {"command": "enable dark_mode for free tier", "plan": "admin"}

        with TestClient(create_app(settings)) as client:
            assert client.post("/api/admin/command", json=body).status_code == 403
            response = client.post(
                "/api/admin/command",
                json=body,
                headers={"X-Admin-Token": "s3cret"},
            )
            assert response.status_code == 200

    def test_list_commands(self, client: TestClient) -> None:
        """Test the command catalog is listed."""
        response = client.get("/api/admin/commands")

        assert response.status_code == 200
        commands = response.json()["commands"]
        assert len(commands) == 5
        assert commands[0]["category"] == "Agent Access"


    def test_validate_config(self, client: TestClient) -> None:
        """Test the catalog validation endpoint."""
        response = client.get("/api/admin/config/validate", params={"path": "pricing-tiers.json"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "valid": True,
            "message": "Configuration is valid",
            "path": "pricing-tiers.json",
        }

    def test_validate_rejected_path(self, client: TestClient) -> None:
        """Test a path outside the allow-list is reported invalid."""
        response = client.get("/api/admin/config/validate", params={"path": "../.env"})

        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_config_summary(self, client: TestClient) -> None:
        """Test the per-tier summary lists enabled agents."""
        response = client.get("/api/admin/config/summary")

        tiers = response.json()["tiers"]
        assert len(tiers) == 6
        assert "editor_agent" in tiers["admin"]["agents"]
        assert "editor_agent" not in tiers["free"]["agents"]

    def test_config_reads_need_admin_token(self, test_settings: GatewaySettings) -> None:
        """Test a configured admin token guards the inspection endpoints."""
        settings = test_settings.model_copy(update={"admin_token": "s3cret"})

        with TestClient(create_app(settings)) as client:
            assert client.get("/api/admin/config/summary").status_code == 403
            assert client.get("/api/admin/config/validate").status_code == 403
            response = client.get("/api/admin/config/summary", headers={"X-Admin-Token": "s3cret"})
            assert response.status_code == 200


class TestHttpMiddleware:
    """Tests for the middleware stack added by create_app."""

    def test_security_headers(self, client: TestClient) -> None:
        """Test responses carry security headers."""
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_security_headers_on_rate_limited(self, test_settings: GatewaySettings) -> None:
        """Test 429 responses from the rate limiter are hardened too."""
        settings = test_settings.model_copy(update={"rate_limit_max": 1})

        with TestClient(create_app(settings)) as client:
            chat(client)
            response = chat(client)

        assert response.status_code == 429
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_security_headers_disabled(self, test_settings: GatewaySettings) -> None:
        """Test the headers can be switched off."""
        settings = test_settings.model_copy(update={"security_headers_enabled": False})

        with TestClient(create_app(settings)) as client:
            response = client.get("/health")

        assert "X-Frame-Options" not in response.headers

class TestCatalogEndpoints:
    """Tests for the agent and plan listings."""

    def test_agents(self, client: TestClient) -> None:
        """Test agents are listed in catalog order."""
        response = client.get("/api/agents")

        agents = response.json()["agents"]
        assert agents[0]["id"] == "f8_agent"
        spectra = next(a for a in agents if a["id"] == "spectra")
        assert spectra["type"] == "remote"
        assert spectra["url"] == "http://localhost:8101"

    def test_agents_health(self, client: TestClient) -> None:
        """Test remote agents are checked and local agents reported healthy."""
        reply = MagicMock()
        reply.status_code = 200
        http = AsyncMock()
        http.get.return_value = reply
        client.app.state.collector._http = http

        response = client.get("/api/agents/health")

        statuses = {a["name"]: a["status"] for a in response.json()["agents"]}
        assert set(statuses.values()) == {"healthy"}
        http.get.assert_awaited_once()

    def test_plans(self, client: TestClient) -> None:
        """Test plans are compared with limits."""
        response = client.get("/api/plans")

        plans = {p["id"]: p for p in response.json()["plans"]}
        assert plans["free"]["price"] == 0
        assert plans["free"]["limits"]["max_message_length"] == 1000
        assert plans["enterprise"]["price"] == "Custom"
