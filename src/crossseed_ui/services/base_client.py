"""
Base HTTP client for external services (Prowlarr, *arr, indexers).

Provides:
- Lazy httpx client initialization with follow_redirects=False
- A single bounded timeout per request, never retried
- Error mapping: 401/403 -> authentication error, connect/timeout ->
  connection error, other non-2xx -> API error
- Connection testing
"""

import time
from typing import Any

import httpx
import structlog

from crossseed_ui import __version__
from crossseed_ui.config import settings
from crossseed_ui.core.exceptions import AuthError, ConnectivityError, CrossSeedUIError

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Base exception hierarchy
# ---------------------------------------------------------------------------


class ServiceClientError(CrossSeedUIError):
    """Base exception for external service client errors."""

    status_code = 502


class ServiceConnectionError(ServiceClientError, ConnectivityError):
    """Timeout, refusal or DNS failure."""

    pass


class ServiceAuthenticationError(ServiceClientError, AuthError):
    """The service rejected the API key."""

    pass


class ServiceAPIError(ServiceClientError):
    """The service answered with an unexpected status or body."""

    pass


# ---------------------------------------------------------------------------
# Base client
# ---------------------------------------------------------------------------


class BaseServiceClient:
    """
    Async HTTP client base class.

    Subclasses set ``service_name`` and the ``_error_*`` types so log events
    and exceptions carry the service they came from.
    """

    service_name: str = "service"
    api_key_header: str = "X-Api-Key"
    _error_base: type[ServiceClientError] = ServiceClientError
    _error_connection: type[ServiceConnectionError] = ServiceConnectionError
    _error_auth: type[ServiceAuthenticationError] = ServiceAuthenticationError
    _error_api: type[ServiceAPIError] = ServiceAPIError

    status_endpoint: str = "/api/v3/system/status"

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            url: Base URL of the service (e.g., http://prowlarr:9696)
            api_key: API key for authentication (plaintext)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)

        Raises:
            ValueError: If URL or API key is missing or malformed
        """
        if not url or not url.startswith(("http://", "https://")):
            raise ValueError("Invalid URL: must start with http:// or https://")
        if not api_key:
            raise ValueError("API key is required")

        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_client(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,  # X-Api-Key must not follow a redirect
                transport=self._transport,
                headers={
                    self.api_key_header: self.api_key,
                    "User-Agent": f"{settings.app_name}/{__version__}",
                },
            )
            logger.debug(f"{self.service_name}_http_client_created", url=self.url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make one HTTP request and return the decoded JSON body.

        Raises:
            ServiceConnectionError subclass: Timeout or connection failure
            ServiceAuthenticationError subclass: 401/403
            ServiceAPIError subclass: Any other non-2xx or a non-JSON body
        """
        await self._ensure_client()
        svc = self.service_name
        url = f"{self.url}{endpoint}"

        try:
            request_start = time.time()
            response = await self._client.request(method=method, url=url, params=params, json=json)
            logger.debug(
                f"{svc}_api_request",
                method=method,
                endpoint=endpoint,
                status_code=response.status_code,
                duration_ms=int((time.time() - request_start) * 1000),
            )

        except httpx.TimeoutException as e:
            logger.error(f"{svc}_request_timeout", url=self.url, endpoint=endpoint)
            raise self._error_connection(f"Connection to {svc.title()} timed out") from e

        except httpx.TransportError as e:
            logger.error(f"{svc}_connection_failed", url=self.url, error=str(e))
            raise self._error_connection(f"Failed to connect to {svc.title()}: {e}") from e

        if response.status_code in (401, 403):
            logger.error(f"{svc}_authentication_failed", url=self.url, status_code=response.status_code)
            raise self._error_auth("Invalid API key")

        if 300 <= response.status_code < 400:
            location = response.headers.get("Location", "unknown")
            logger.warning(f"{svc}_redirect_not_followed", url=self.url, location=location)
            raise self._error_api(
                f"{svc.title()} returned redirect ({response.status_code}) to {location}. "
                "Check the URL."
            )

        if response.status_code >= 400:
            logger.error(
                f"{svc}_http_error",
                url=self.url,
                status_code=response.status_code,
                error=response.text[:200],
            )
            raise self._error_api(f"HTTP {response.status_code}: {response.reason_phrase}")

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise self._error_api(f"{svc.title()} returned invalid JSON") from e

    async def test_connection(self) -> dict[str, Any]:
        """
        Fetch the system status endpoint.

        Returns:
            dict: success, version, response_time_ms, error
        """
        try:
            start_time = time.time()
            result = await self._request("GET", self.status_endpoint)
            response_time_ms = int((time.time() - start_time) * 1000)
            version = (result or {}).get("version", "unknown")

            logger.info(
                f"{self.service_name}_connection_test_success",
                url=self.url,
                version=version,
                response_time_ms=response_time_ms,
            )
            return {
                "success": True,
                "version": version,
                "response_time_ms": response_time_ms,
                "error": None,
            }

        except ServiceClientError as e:
            logger.warning(f"{self.service_name}_connection_test_failed", url=self.url, error=e.message)
            return {
                "success": False,
                "version": None,
                "response_time_ms": None,
                "error": e.message,
            }
