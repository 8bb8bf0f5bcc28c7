"""
Prowlarr integration database models.

- ProwlarrConfig: single-row connection and schedule settings (id is always 1)
- ProwlarrIndexer: local cache of known Prowlarr indexers and whether each
  one is selected for the daemon's torznab list
- ProwlarrSyncHistory: append-only log of sync attempts
"""

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.sql import func

from crossseed_ui.database import Base

SINGLETON_ID = 1


class ProwlarrConfig(Base):
    """
    Prowlarr connection settings.

    The API key is Fernet-encrypted at rest. ``last_sync`` advances on every
    attempt, successful or not, so a failing Prowlarr is retried once per
    interval rather than on every scheduler tick.
    """

    __tablename__ = "prowlarr_config"

    id = Column(Integer, primary_key=True, default=SINGLETON_ID)

    url = Column(
        String(255),
        nullable=False,
        comment="Base URL of the Prowlarr instance (e.g., http://prowlarr:9696)",
    )
    encrypted_api_key = Column(
        Text,
        nullable=False,
        comment="Fernet-encrypted Prowlarr API key",
    )

    sync_enabled = Column(
        Boolean,
        default=False,
        nullable=False,
        comment="Whether the scheduler syncs indexers automatically",
    )
    sync_interval = Column(
        String(32),
        default="1 hour",
        nullable=False,
        comment="Human interval such as '15 minutes' or '1 day'",
    )

    last_sync = Column(
        DateTime,
        nullable=True,
        comment="Time of the most recent sync attempt (UTC, naive)",
    )
    last_sync_status = Column(
        Enum("success", "error", name="sync_status_enum"),
        nullable=True,
        comment="Outcome of the most recent sync attempt",
    )

    updated_at = Column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ProwlarrConfig(url='{self.url}', sync_enabled={self.sync_enabled})>"


class ProwlarrIndexer(Base):
    """Cached Prowlarr indexer keyed by Prowlarr's own id."""

    __tablename__ = "prowlarr_indexers"

    id = Column(Integer, primary_key=True, index=True)

    prowlarr_id = Column(
        Integer,
        unique=True,
        nullable=False,
        index=True,
        comment="Indexer id assigned by Prowlarr",
    )
    name = Column(String(255), nullable=False)
    enabled_for_crossseed = Column(
        Boolean,
        default=False,
        nullable=False,
        comment="Selected for inclusion in the daemon's torznab list",
    )
    last_status = Column(
        String(32),
        nullable=True,
        comment="Result of the last indexer test (ok / failed)",
    )
    last_tested = Column(DateTime, nullable=True)

    updated_at = Column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ProwlarrIndexer(prowlarr_id={self.prowlarr_id}, "
            f"enabled_for_crossseed={self.enabled_for_crossseed})>"
        )


class ProwlarrSyncHistory(Base):
    """One row per sync attempt. Rows are never updated."""

    __tablename__ = "prowlarr_sync_history"

    id = Column(Integer, primary_key=True, index=True)

    sync_type = Column(
        Enum("manual", "scheduled", name="sync_type_enum"),
        nullable=False,
    )
    status = Column(
        Enum("success", "error", name="sync_history_status_enum"),
        nullable=False,
        index=True,
    )
    indexers_added = Column(Integer, default=0, nullable=False)
    indexers_updated = Column(Integer, default=0, nullable=False)
    indexers_removed = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    synced_at = Column(
        DateTime,
        nullable=False,
        index=True,
        comment="Time of the attempt (UTC, naive)",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sync_type": self.sync_type,
            "status": self.status,
            "indexers_added": self.indexers_added,
            "indexers_updated": self.indexers_updated,
            "indexers_removed": self.indexers_removed,
            "error_message": self.error_message,
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
        }

    def __repr__(self) -> str:
        return f"<ProwlarrSyncHistory(id={self.id}, status='{self.status}')>"
