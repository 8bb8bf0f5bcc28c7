"""
Unit tests for the daemon health probe.
"""

import asyncio
import threading

import httpx
import pytest

from crossseed_ui.core.exceptions import ConfigParseError
from crossseed_ui.services.daemon import PING_ENDPOINT, DaemonMonitor, DaemonStatus, probe_daemon

URL = "http://cross-seed:2468"


def respond(status_code: int, headers: dict | None = None):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, headers=headers or {})

    return handler, seen


class TestProbeDaemon:
    @pytest.mark.asyncio
    async def test_running_with_version(self):
        handler, seen = respond(200, {"x-cross-seed-version": "6.12.1"})

        status = await probe_daemon(URL, "k" * 24, transport=httpx.MockTransport(handler))

        assert status.running is True
        assert status.version == "6.12.1"
        assert status.error is None
        assert seen[0].url.path == PING_ENDPOINT
        assert seen[0].headers["X-Api-Key"] == "k" * 24

    @pytest.mark.asyncio
    async def test_no_api_key_header_when_missing(self):
        handler, seen = respond(200)

        await probe_daemon(URL, None, transport=httpx.MockTransport(handler))

        assert "X-Api-Key" not in seen[0].headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [401, 403])
    async def test_unauthorized_is_still_running(self, code):
        handler, _ = respond(code)

        status = await probe_daemon(URL, "bad", transport=httpx.MockTransport(handler))

        assert status.running is True
        assert status.error == "API key invalid or missing"

    @pytest.mark.asyncio
    async def test_other_http_error_is_running(self):
        handler, _ = respond(404)

        status = await probe_daemon(URL, transport=httpx.MockTransport(handler))

        assert status.running is True
        assert status.error == "HTTP 404"

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        status = await probe_daemon(URL, transport=httpx.MockTransport(handler))

        assert status.running is False
        assert "Connection refused" in status.error

    @pytest.mark.asyncio
    async def test_httpx_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        status = await probe_daemon(URL, transport=httpx.MockTransport(handler))

        assert status.running is False
        assert status.error == "Connection timeout"

    @pytest.mark.asyncio
    async def test_hard_deadline(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        status = await probe_daemon(URL, timeout=0.05, transport=httpx.MockTransport(handler))

        assert status.running is False
        assert status.error == "Connection timeout"

    def test_to_dict(self):
        data = DaemonStatus(running=True, version="6.0.0").to_dict()
        assert data["running"] is True
        assert data["version"] == "6.0.0"
        assert data["error"] is None
        assert data["last_check"]


class TestDaemonMonitor:
    @pytest.mark.asyncio
    async def test_unconfigured(self):
        monitor = DaemonMonitor(None)

        status = await monitor.refresh()

        assert monitor.configured is False
        assert status.running is False
        assert "not configured" in status.error
        assert monitor.last_status is status

    @pytest.mark.asyncio
    async def test_uses_key_provider(self):
        handler, seen = respond(200)
        monitor = DaemonMonitor(URL, api_key_provider=lambda: "secret-key", transport=httpx.MockTransport(handler))

        status = await monitor.refresh()

        assert status.running is True
        assert seen[0].headers["X-Api-Key"] == "secret-key"

    @pytest.mark.asyncio
    async def test_key_provider_runs_off_the_event_loop(self):
        handler, _seen = respond(200)
        provider_threads = []

        def provider() -> str:
            provider_threads.append(threading.get_ident())
            return "secret-key"

        monitor = DaemonMonitor(URL, api_key_provider=provider, transport=httpx.MockTransport(handler))
        await monitor.refresh()

        assert provider_threads
        assert provider_threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_key_provider_failure_probes_without_key(self):
        handler, seen = respond(401)

        def broken_provider() -> str:
            raise ConfigParseError("bad config")

        monitor = DaemonMonitor(URL, api_key_provider=broken_provider, transport=httpx.MockTransport(handler))
        status = await monitor.refresh()

        assert "X-Api-Key" not in seen[0].headers
        assert status.running is True
        assert status.error == "API key invalid or missing"

    @pytest.mark.asyncio
    async def test_last_status_tracks_latest(self):
        codes = iter([200, 500])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(next(codes))

        monitor = DaemonMonitor(URL, transport=httpx.MockTransport(handler))
        await monitor.refresh()
        second = await monitor.refresh()

        assert monitor.last_status is second
        assert second.error == "HTTP 500"
