"""
Prowlarr API client for CrossSeed UI.

Prowlarr exposes every indexer it manages as a Torznab endpoint at
``<prowlarr>/<indexer id>/api``. This client lists indexers (API v1),
tests them, and builds those Torznab URLs for the daemon's ``torznab`` list.
"""

import re
from typing import Any

import structlog

from crossseed_ui.services.base_client import (
    BaseServiceClient,
    ServiceAPIError,
    ServiceAuthenticationError,
    ServiceClientError,
    ServiceConnectionError,
)

logger = structlog.get_logger()


class ProwlarrError(ServiceClientError):
    """Base exception for Prowlarr API errors."""

    pass


class ProwlarrConnectionError(ProwlarrError, ServiceConnectionError):
    """Exception raised when connection to Prowlarr fails."""

    pass


class ProwlarrAuthenticationError(ProwlarrError, ServiceAuthenticationError):
    """Exception raised when Prowlarr rejects the API key."""

    pass


class ProwlarrAPIError(ProwlarrError, ServiceAPIError):
    """Exception raised when the Prowlarr API returns an error."""

    pass


def prowlarr_url_pattern(base_url: str) -> re.Pattern[str]:
    """Match Torznab URLs generated for the Prowlarr instance at ``base_url``."""
    return re.compile(rf"^{re.escape(base_url.rstrip('/'))}/\d+/api")


def prowlarr_indexer_id(base_url: str, url: str) -> int | None:
    """Return the indexer id encoded in a generated Torznab URL, if any."""
    match = re.match(rf"^{re.escape(base_url.rstrip('/'))}/(\d+)/api", url)
    return int(match.group(1)) if match else None


class ProwlarrClient(BaseServiceClient):
    """Async HTTP client for the Prowlarr v1 API."""

    service_name = "prowlarr"
    status_endpoint = "/api/v1/system/status"
    _error_base = ProwlarrError
    _error_connection = ProwlarrConnectionError
    _error_auth = ProwlarrAuthenticationError
    _error_api = ProwlarrAPIError

    async def get_indexers(self) -> list[dict[str, Any]]:
        """
        List indexers that can feed the daemon.

        Only enabled torrent indexers are returned; Usenet indexers and
        indexers disabled in Prowlarr are dropped.

        Returns:
            list[dict]: id, name, protocol, privacy, priority, definition_name

        Raises:
            ProwlarrError: If the request fails
        """
        logger.info("prowlarr_get_indexers_started", url=self.url)
        result = await self._request("GET", "/api/v1/indexer")
        if not isinstance(result, list):
            raise ProwlarrAPIError("Unexpected response from Prowlarr indexer list")

        indexers = [
            {
                "id": raw["id"],
                "name": raw.get("name", f"Indexer {raw['id']}"),
                "protocol": raw.get("protocol"),
                "privacy": raw.get("privacy"),
                "priority": raw.get("priority"),
                "definition_name": raw.get("definitionName"),
            }
            for raw in result
            if raw.get("protocol") == "torrent" and raw.get("enable") and "id" in raw
        ]

        logger.info(
            "prowlarr_get_indexers_completed",
            url=self.url,
            total=len(result),
            torrent_enabled=len(indexers),
        )
        return indexers

    async def test_indexer(self, indexer_id: int) -> dict[str, Any]:
        """
        Ask Prowlarr to test one indexer.

        Returns:
            dict: success and error
        """
        try:
            await self._request("POST", "/api/v1/indexer/test", json={"id": indexer_id})
            logger.info("prowlarr_indexer_test_success", indexer_id=indexer_id)
            return {"success": True, "error": None}
        except ProwlarrError as e:
            logger.warning("prowlarr_indexer_test_failed", indexer_id=indexer_id, error=e.message)
            return {"success": False, "error": e.message}
