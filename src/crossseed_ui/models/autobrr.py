"""
autobrr integration database model.

- AutobrrConfig: single-row connection settings (id is always 1)
"""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from crossseed_ui.database import Base

SINGLETON_ID = 1


class AutobrrConfig(Base):
    """autobrr connection settings. The API key is Fernet-encrypted at rest."""

    __tablename__ = "autobrr_config"

    id = Column(Integer, primary_key=True, default=SINGLETON_ID)

    url = Column(
        String(255),
        nullable=False,
        comment="Base URL of the autobrr instance (e.g., http://autobrr:7474)",
    )
    encrypted_api_key = Column(
        Text,
        nullable=False,
        comment="Fernet-encrypted autobrr API key",
    )

    updated_at = Column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AutobrrConfig(url='{self.url}')>"
