"""
Unit tests for the Prowlarr API client.

Tests cover:
- Exception hierarchy (service-specific and generic categories)
- Indexer listing filters (torrent + enabled only)
- Error mapping for auth, HTTP and transport failures
- Recognition of the Torznab URLs the sync engine generates
"""

import httpx
import pytest

from crossseed_ui.core.exceptions import AuthError, ConnectivityError, CrossSeedUIError
from crossseed_ui.services.base_client import (
    ServiceAPIError,
    ServiceAuthenticationError,
    ServiceClientError,
    ServiceConnectionError,
)
from crossseed_ui.services.prowlarr import (
    ProwlarrAPIError,
    ProwlarrAuthenticationError,
    ProwlarrClient,
    ProwlarrConnectionError,
    ProwlarrError,
    prowlarr_indexer_id,
    prowlarr_url_pattern,
)
from crossseed_ui.services.prowlarr_sync import build_torznab_url

URL = "http://prowlarr:9696"
KEY = "a" * 32


def client_for(handler) -> ProwlarrClient:
    return ProwlarrClient(URL, KEY, transport=httpx.MockTransport(handler))


class TestExceptionHierarchy:
    def test_specific_errors(self):
        assert issubclass(ProwlarrError, ServiceClientError)
        assert issubclass(ProwlarrConnectionError, ProwlarrError)
        assert issubclass(ProwlarrConnectionError, ServiceConnectionError)
        assert issubclass(ProwlarrAuthenticationError, ServiceAuthenticationError)
        assert issubclass(ProwlarrAPIError, ServiceAPIError)

    def test_generic_categories(self):
        assert issubclass(ProwlarrConnectionError, ConnectivityError)
        assert issubclass(ProwlarrAuthenticationError, AuthError)
        assert issubclass(ProwlarrError, CrossSeedUIError)
        assert ProwlarrConnectionError("x").status_code == 502


class TestInitialization:
    def test_trailing_slash_stripped(self):
        assert ProwlarrClient(URL + "/", KEY).url == URL

    @pytest.mark.parametrize("url", ["", "prowlarr:9696", "ftp://prowlarr"])
    def test_invalid_url(self, url):
        with pytest.raises(ValueError):
            ProwlarrClient(url, KEY)

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            ProwlarrClient(URL, "")


class TestGetIndexers:
    @pytest.mark.asyncio
    async def test_filters_and_shapes(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["X-Api-Key"] == KEY
            return httpx.Response(
                200,
                json=[
                    {"id": 1, "name": "A", "protocol": "torrent", "enable": True, "definitionName": "a-def"},
                    {"id": 2, "name": "B", "protocol": "usenet", "enable": True},
                    {"id": 3, "name": "C", "protocol": "torrent", "enable": False},
                ],
            )

        async with client_for(handler) as client:
            indexers = await client.get_indexers()

        assert indexers == [
            {
                "id": 1,
                "name": "A",
                "protocol": "torrent",
                "privacy": None,
                "priority": None,
                "definition_name": "a-def",
            }
        ]

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        async with client_for(lambda request: httpx.Response(200, json={"not": "a list"})) as client:
            with pytest.raises(ProwlarrAPIError):
                await client.get_indexers()

    @pytest.mark.asyncio
    async def test_auth_failure(self):
        async with client_for(lambda request: httpx.Response(401)) as client:
            with pytest.raises(ProwlarrAuthenticationError, match="Invalid API key"):
                await client.get_indexers()

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with client_for(lambda request: httpx.Response(503)) as client:
            with pytest.raises(ProwlarrAPIError, match="HTTP 503"):
                await client.get_indexers()

    @pytest.mark.asyncio
    async def test_redirect_not_followed(self):
        response = httpx.Response(302, headers={"Location": "http://elsewhere/login"})
        async with client_for(lambda request: response) as client:
            with pytest.raises(ProwlarrAPIError, match="redirect"):
                await client.get_indexers()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with client_for(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(ProwlarrAPIError, match="invalid JSON"):
                await client.get_indexers()

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with client_for(handler) as client:
            with pytest.raises(ProwlarrConnectionError):
                await client.get_indexers()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow", request=request)

        async with client_for(handler) as client:
            with pytest.raises(ProwlarrConnectionError, match="timed out"):
                await client.get_indexers()


class TestOtherCalls:
    @pytest.mark.asyncio
    async def test_connection_success(self):
        handler = lambda request: httpx.Response(200, json={"version": "1.21.2"})  # noqa: E731
        async with client_for(handler) as client:
            result = await client.test_connection()

        assert result["success"] is True
        assert result["version"] == "1.21.2"
        assert result["error"] is None
        assert result["response_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_connection_failure_is_a_result(self):
        async with client_for(lambda request: httpx.Response(403)) as client:
            result = await client.test_connection()

        assert result == {"success": False, "version": None, "response_time_ms": None, "error": "Invalid API key"}

    @pytest.mark.asyncio
    async def test_indexer_test_failure(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(400)

        async with client_for(handler) as client:
            result = await client.test_indexer(4)

        assert result["success"] is False
        assert "HTTP 400" in result["error"]
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/v1/indexer/test"


class TestUrlRecognition:
    def test_pattern_matches_generated_urls(self):
        pattern = prowlarr_url_pattern(URL)
        assert pattern.match(f"{URL}/12/api?apikey=x")
        assert not pattern.match(f"{URL}/api/v1/indexer")
        assert not pattern.match("http://other:9696/12/api")

    def test_sync_urls_are_recognized(self):
        url = build_torznab_url(URL + "/", 12, KEY)

        assert url == f"{URL}/12/api?apikey={KEY}"
        assert prowlarr_indexer_id(URL, url) == 12

    def test_indexer_id(self):
        assert prowlarr_indexer_id(URL, f"{URL}/12/api?apikey=x") == 12
        assert prowlarr_indexer_id(URL + "/", f"{URL}/12/api") == 12
        assert prowlarr_indexer_id(URL, "http://manual/torznab") is None
