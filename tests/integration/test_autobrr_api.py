"""
Integration tests for the autobrr endpoints.
"""

import json
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from crossseed_ui.api.deps import get_connection_tester
from crossseed_ui.config import settings
from crossseed_ui.services.connection_test import ConnectionTester

URL = "http://autobrr:7474"
KEY = "AUTOBRRKEY"


@pytest.fixture
def configured(client: TestClient) -> TestClient:
    response = client.put("/api/autobrr", json={"url": URL + "/", "api_key": KEY})
    assert response.status_code == 200
    return client


class TestSettings:
    def test_unconfigured(self, client: TestClient):
        assert client.get("/api/autobrr").json() == {"configured": False}

    def test_save_and_read_masked(self, configured: TestClient):
        body = configured.get("/api/autobrr").json()

        assert body == {"configured": True, "url": URL, "api_key_masked": "••••RKEY"}

    @pytest.mark.parametrize(
        "payload",
        [
            {"url": URL},
            {"url": URL, "api_key": "   "},
            {"url": "autobrr:7474", "api_key": KEY},
        ],
    )
    def test_invalid_save(self, client: TestClient, payload):
        assert client.put("/api/autobrr", json=payload).status_code == 422

    def test_delete(self, configured: TestClient):
        assert configured.delete("/api/autobrr").json() == {"success": True}
        assert configured.get("/api/autobrr").json() == {"configured": False}


@pytest.fixture
def autobrr_requests(client: TestClient):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.headers.get("X-Api-Key") != KEY:
            return httpx.Response(401)
        if request.url.path == "/api/config":
            return httpx.Response(200, json={"version": "1.48.0"})
        return httpx.Response(200, text="OK")

    client.app.dependency_overrides[get_connection_tester] = lambda: ConnectionTester(
        timeout=2, transport=httpx.MockTransport(handler)
    )
    yield seen
    client.app.dependency_overrides.pop(get_connection_tester, None)


class TestConnection:
    def test_with_explicit_key(self, client: TestClient, autobrr_requests):
        body = client.post("/api/autobrr/test", json={"url": URL, "api_key": KEY}).json()

        assert body["success"] is True
        assert body["version"] == "1.48.0"
        assert autobrr_requests[0].url.path == "/api/healthz/liveness"

    def test_with_stored_key(self, configured: TestClient, autobrr_requests):
        assert configured.post("/api/autobrr/test", json={"url": URL}).json()["success"] is True

    def test_bad_key_is_a_result(self, client: TestClient, autobrr_requests):
        response = client.post("/api/autobrr/test", json={"url": URL, "api_key": "wrong"})

        assert response.status_code == 200
        assert response.json()["error"] == "Invalid API key"

    def test_no_key_and_none_stored(self, client: TestClient, autobrr_requests):
        response = client.post("/api/autobrr/test", json={"url": URL})

        assert response.status_code == 400
        assert response.json()["detail"] == "autobrr not configured"
        assert autobrr_requests == []


class TestWebhook:
    def test_from_daemon_config(self, client: TestClient, config_path: Path, sample_config):
        config_path.write_text(
            f"module.exports = {json.dumps({**sample_config, 'host': 'cross-seed'})};\n",
            encoding="utf-8",
        )

        body = client.get("/api/autobrr/webhook").json()

        assert body["crossseed_url"] == "http://cross-seed:2468"
        assert body["webhook_url"] == "http://cross-seed:2468/api/announce"
        assert body["api_key"] == "a" * 32
        action = json.loads(body["action_json"])
        assert action["webhook_headers"][0] == {"key": "X-Api-Key", "value": "a" * 32}

    def test_default_host(self, client: TestClient, config_path: Path):
        assert client.get("/api/autobrr/webhook").json()["crossseed_url"] == "http://localhost:2468"

    def test_missing_config_file(self, client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(settings, "crossseed_config_path", str(tmp_path / "absent.js"))

        assert client.get("/api/autobrr/webhook").status_code == 404

    def test_config_path_not_set(self, client: TestClient, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(settings, "crossseed_config_path", None)

        response = client.get("/api/autobrr/webhook")

        assert response.status_code == 500
        assert response.json()["detail"] == "CROSSSEED_CONFIG_PATH not configured"
