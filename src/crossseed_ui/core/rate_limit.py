"""
Rate limiting utilities for CrossSeed UI.

Provides a proxy-aware key function for slowapi. X-Forwarded-For is trusted
only in production, where the dashboard is expected to sit behind a reverse
proxy; elsewhere the socket peer address is used.
"""

import structlog
from fastapi import Request
from slowapi import Limiter

from crossseed_ui.config import settings

logger = structlog.get_logger(__name__)


def rate_limit_key_func(request: Request) -> str:
    """
    Extract client IP address for rate limiting.

    Returns:
        Client IP address string, or "unknown" if it cannot be determined.
    """
    if settings.environment == "production":
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

    client_ip = request.client.host if request.client else "unknown"
    if client_ip == "unknown":
        logger.warning("rate_limit_key_unknown_client")
    return client_ip


# Shared limiter; route decorators and the app middleware use this instance.
limiter = Limiter(
    key_func=rate_limit_key_func,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri="memory://",
    enabled=settings.environment != "test",
)
