"""Pydantic schemas for the Prowlarr integration endpoints."""

from pydantic import BaseModel, Field, field_validator


def normalize_url(v: str) -> str:
    v = v.strip().rstrip("/")
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return v


class ProwlarrSettingsRequest(BaseModel):
    """
    Body for saving Prowlarr settings.

    ``api_key`` may be omitted on update to keep the stored key.
    """

    url: str = Field(..., min_length=1, max_length=255)
    api_key: str | None = Field(default=None, max_length=128)
    sync_enabled: bool = False
    sync_interval: str = Field(default="1 hour", min_length=1, max_length=32)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)

    @field_validator("api_key")
    @classmethod
    def strip_api_key(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class ProwlarrTestRequest(BaseModel):
    """Body for testing a Prowlarr connection before (or after) saving it."""

    url: str = Field(..., min_length=1, max_length=255)
    api_key: str | None = Field(default=None, max_length=128)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)


class SyncRequest(BaseModel):
    """Body for a manual sync: the indexers to put in the daemon's torznab list."""

    indexer_ids: list[int] = Field(default_factory=list)

    @field_validator("indexer_ids")
    @classmethod
    def positive_ids(cls, v: list[int]) -> list[int]:
        if any(i <= 0 for i in v):
            raise ValueError("Indexer ids must be positive")
        return v
