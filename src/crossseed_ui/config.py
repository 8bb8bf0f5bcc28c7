"""
Application configuration with Pydantic Settings and Docker secrets support.

These are the dashboard's own process settings (where the daemon lives,
where its configuration file is, how often background jobs tick). The
daemon's configuration file itself is modelled in
``crossseed_ui.schemas.config``.
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with Docker secrets support.

    Configuration hierarchy (highest priority first):
    1. Docker secrets (files referenced by *_FILE variables)
    2. Environment variables
    3. .env file
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    environment: Literal["development", "production", "test"] = Field(
        default="production",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    app_name: str = Field(
        default="CrossSeed-UI",
        description="Application name",
    )
    log_dir: str = Field(
        default="./logs",
        description="Directory for rotating log files",
    )

    # Daemon Settings
    crossseed_url: str | None = Field(
        default=None,
        description="Base URL of the cross-seed daemon (e.g., http://cross-seed:2468)",
    )
    crossseed_config_path: str | None = Field(
        default=None,
        description="Path to the cross-seed configuration file",
    )

    # Security Settings
    secret_key: str = Field(
        default="",
        description="JWT / field-encryption secret (256-bit minimum). Use SECRET_KEY_FILE for Docker secrets.",
    )
    secret_key_file: str | None = Field(
        default=None,
        description="Path to secret key file (Docker secret)",
    )
    disable_auth: bool = Field(
        default=False,
        description="Disable dashboard login entirely (trusted networks only)",
    )
    session_expire_hours: int = Field(
        default=24 * 7,
        description="Session cookie lifetime in hours",
        ge=1,
        le=24 * 90,
    )
    secure_cookies: bool = Field(
        default=True,
        description="Use secure flag on cookies (requires HTTPS)",
    )

    # Database Settings
    database_url: str = Field(
        default="sqlite:///./data/ui.db",
        description="SQLite database URL for dashboard state",
    )

    # Server Settings
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=3000,
        description="Server port",
        ge=1,
        le=65535,
    )
    reload: bool = Field(
        default=False,
        description="Enable auto-reload (development only)",
    )

    # CORS Settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow credentials in CORS requests",
    )
    trusted_hosts: list[str] = Field(
        default=["*"],
        description="Trusted host headers",
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=120,
        description="Global rate limit per minute per IP",
        ge=1,
        le=1000,
    )

    # Background jobs
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the Prowlarr sync check and daemon probe in the background",
    )
    prowlarr_check_interval_seconds: int = Field(
        default=60,
        description="How often the Prowlarr sync due-check runs",
        ge=10,
        le=3600,
    )
    daemon_probe_interval_seconds: int = Field(
        default=30,
        description="How often the daemon health probe runs",
        ge=5,
        le=3600,
    )

    # External request timeouts (seconds)
    daemon_probe_timeout: float = Field(
        default=5.0,
        description="Hard deadline for a daemon health probe",
        gt=0,
        le=9,
    )
    prowlarr_request_timeout: float = Field(
        default=15.0,
        description="HTTP timeout for Prowlarr API calls",
        ge=1,
        le=60,
    )
    connection_test_timeout: float = Field(
        default=10.0,
        description="HTTP timeout for connection tests",
        ge=1,
        le=60,
    )

    def get_secret_key(self) -> str:
        """
        Retrieve secret key from file or environment variable.

        Raises:
            RuntimeError: If secret key is not configured or is too short
        """
        key = self._read_secret(self.secret_key_file, self.secret_key)
        if not key:
            raise RuntimeError(
                "SECRET_KEY not configured. Set SECRET_KEY or SECRET_KEY_FILE environment variable."
            )
        if len(key) < 32:
            raise RuntimeError("SECRET_KEY must be at least 32 characters (256 bits)")
        return key

    def get_config_path(self) -> Path:
        """
        Return the cross-seed configuration file path.

        Raises:
            RuntimeError: If CROSSSEED_CONFIG_PATH is not configured
        """
        if not self.crossseed_config_path:
            raise RuntimeError("CROSSSEED_CONFIG_PATH not configured")
        return Path(self.crossseed_config_path)

    @staticmethod
    def _read_secret(file_path: str | None, env_value: str) -> str:
        """Read secret from file or return environment variable value."""
        if file_path and os.path.exists(file_path):
            try:
                return Path(file_path).read_text().strip()
            except Exception as e:
                raise RuntimeError(f"Failed to read secret from {file_path}: {e}") from e

        return env_value

    @field_validator("reload")
    @classmethod
    def validate_reload(cls, v: bool, info) -> bool:
        """Ensure reload is only enabled in development."""
        environment = info.data.get("environment", "production")
        if v and environment == "production":
            raise ValueError("Auto-reload cannot be enabled in production")
        return v

    @field_validator("crossseed_url")
    @classmethod
    def validate_crossseed_url(cls, v: str | None) -> str | None:
        """Require an http(s) daemon URL and strip the trailing slash."""
        if v is None or not v.strip():
            return None
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("CROSSSEED_URL must start with http:// or https://")
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate secret key meets minimum security requirements."""
        if not v:
            # Allow empty when SECRET_KEY_FILE is set (Docker secrets mode).
            if os.environ.get("SECRET_KEY_FILE"):
                return v
            raise ValueError(
                "Secret key is required. Set SECRET_KEY environment variable "
                "or use SECRET_KEY_FILE for Docker secrets."
            )
        if len(v) < 32:
            raise ValueError(
                f"Secret key must be at least 32 bytes (256 bits). "
                f"Current length: {len(v)} bytes. "
                f"Generate a secure key with: openssl rand -base64 32"
            )
        return v


# Global settings instance
settings = Settings()
