"""Pydantic schemas for connection tests."""

from pydantic import BaseModel, Field

from crossseed_ui.services.connection_test import ConnectionType


class ConnectionTestRequest(BaseModel):
    type: ConnectionType
    url: str = Field(..., min_length=1, max_length=2048)
    api_key: str | None = Field(default=None, max_length=256)
