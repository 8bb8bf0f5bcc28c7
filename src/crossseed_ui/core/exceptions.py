"""
Domain exception hierarchy for CrossSeed UI.

Every failure that can cross the API boundary derives from
``CrossSeedUIError`` and carries a ``status_code`` used by the exception
handler in ``crossseed_ui.main``. Client-specific errors (Prowlarr, torrent
clients) multiply-inherit ``ConnectivityError`` or ``AuthError`` so callers
can catch by category without knowing which service failed.
"""

from typing import Any


class CrossSeedUIError(Exception):
    """Base exception for all CrossSeed UI errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigValidationError(CrossSeedUIError):
    """Configuration input failed validation; nothing was written."""

    status_code = 422

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(CrossSeedUIError):
    """A requested file or record does not exist."""

    status_code = 404


class ConfigNotFoundError(NotFoundError):
    """The daemon configuration file does not exist."""

    pass


class BackupNotFoundError(NotFoundError):
    """The requested backup file does not exist."""

    pass


class ConfigParseError(CrossSeedUIError):
    """The configuration file exists but is not valid configuration syntax."""

    status_code = 500


class InvalidBackupNameError(CrossSeedUIError):
    """A backup filename failed the strict name pattern."""

    status_code = 400


class ConnectivityError(CrossSeedUIError):
    """Timeout, refusal or DNS failure while talking to an external service."""

    status_code = 502


class AuthError(CrossSeedUIError):
    """An external service rejected the supplied credentials."""

    status_code = 502


class ProwlarrNotConfiguredError(CrossSeedUIError):
    """An operation needs a saved Prowlarr URL and API key."""

    status_code = 400


class AutobrrNotConfiguredError(CrossSeedUIError):
    """An operation needs a saved autobrr URL and API key."""

    status_code = 400
