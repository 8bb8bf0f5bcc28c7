"""
cross-seed daemon health probing.

Any HTTP response at all means the daemon process is up, even a 401 or a
404; only a refused connection or a timeout means it is down. The probe
timeout is a hard deadline enforced with ``asyncio.wait_for`` on top of the
httpx timeout.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from crossseed_ui.config import settings
from crossseed_ui.core.exceptions import CrossSeedUIError

logger = structlog.get_logger()

VERSION_HEADER = "x-cross-seed-version"
PING_ENDPOINT = "/api/ping"


@dataclass
class DaemonStatus:
    running: bool
    version: str | None = None
    error: str | None = None
    last_check: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "version": self.version,
            "error": self.error,
            "last_check": self.last_check.isoformat(),
        }


async def probe_daemon(
    url: str,
    api_key: str | None = None,
    timeout: float = 5.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DaemonStatus:
    """
    Ask the daemon whether it is alive and which version it runs.

    Never raises; every failure is reported in the returned status.
    """
    headers = {"X-Api-Key": api_key} if api_key else {}
    target = f"{url.rstrip('/')}{PING_ENDPOINT}"

    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            transport=transport,
        ) as client:
            response = await asyncio.wait_for(client.get(target, headers=headers), timeout=timeout)

    except (TimeoutError, httpx.TimeoutException):
        logger.warning("daemon_probe_timeout", url=url, timeout=timeout)
        return DaemonStatus(running=False, error="Connection timeout")

    except httpx.TransportError as e:
        logger.info("daemon_probe_unreachable", url=url, error=str(e))
        return DaemonStatus(running=False, error=str(e) or "Connection failed")

    version = response.headers.get(VERSION_HEADER)
    if response.status_code in (401, 403):
        logger.warning("daemon_probe_unauthorized", url=url, status_code=response.status_code)
        return DaemonStatus(running=True, version=version, error="API key invalid or missing")

    if not response.is_success:
        logger.info("daemon_probe_http_error", url=url, status_code=response.status_code)
        return DaemonStatus(running=True, version=version, error=f"HTTP {response.status_code}")

    logger.debug("daemon_probe_ok", url=url, version=version)
    return DaemonStatus(running=True, version=version)


class DaemonMonitor:
    """
    Keeps the most recent daemon status.

    The scheduler refreshes it on a fixed tick; the status endpoint
    refreshes it on demand.

    Args:
        api_key_provider: Returns the daemon API key (read from its config
            file) or None
    """

    def __init__(
        self,
        url: str | None,
        api_key_provider: Callable[[], str | None] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._api_key_provider = api_key_provider
        self.timeout = timeout or settings.daemon_probe_timeout
        self._transport = transport
        self.last_status: DaemonStatus | None = None

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def _api_key(self) -> str | None:
        if self._api_key_provider is None:
            return None
        try:
            return await asyncio.to_thread(self._api_key_provider)
        except CrossSeedUIError as e:
            # Probe without a key; the daemon answers 401 if it needs one.
            logger.debug("daemon_api_key_unavailable", error=e.message)
            return None

    async def refresh(self) -> DaemonStatus:
        if not self.url:
            status = DaemonStatus(running=False, error="CROSSSEED_URL not configured")
        else:
            api_key = await self._api_key()
            status = await probe_daemon(
                self.url, api_key, timeout=self.timeout, transport=self._transport
            )

        previous = self.last_status
        if previous is None or previous.running != status.running:
            logger.info("daemon_status_changed", running=status.running, version=status.version)
        self.last_status = status
        return status
