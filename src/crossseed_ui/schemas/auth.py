"""Pydantic schemas for dashboard login."""

import re

from pydantic import BaseModel, Field, field_validator

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class Credentials(BaseModel):
    """Body for login."""

    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=256)


class SetupRequest(Credentials):
    """Body for first-run account creation."""

    password: str = Field(..., min_length=8, max_length=256)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters long")
        if not _USERNAME_RE.match(v):
            raise ValueError("Username may only contain letters, digits, '.', '_' and '-'")
        return v
