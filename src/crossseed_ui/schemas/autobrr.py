"""Pydantic schemas for the autobrr integration endpoints."""

from pydantic import BaseModel, Field, field_validator

from crossseed_ui.schemas.prowlarr import normalize_url


class AutobrrSettingsRequest(BaseModel):
    """Body for saving autobrr settings. Both fields are always required."""

    url: str = Field(..., min_length=1, max_length=255)
    api_key: str = Field(..., min_length=1, max_length=128)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)

    @field_validator("api_key")
    @classmethod
    def strip_api_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("API key must not be blank")
        return v


class AutobrrTestRequest(BaseModel):
    """Body for testing an autobrr connection; omit ``api_key`` to use the saved one."""

    url: str = Field(..., min_length=1, max_length=255)
    api_key: str | None = Field(default=None, max_length=128)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)
