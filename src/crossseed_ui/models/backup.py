"""
ConfigBackup database model.

Backup files themselves live next to the daemon configuration file; this
table only remembers why each one was taken.
"""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from crossseed_ui.database import Base


class ConfigBackup(Base):
    """Reason metadata for a configuration backup file."""

    __tablename__ = "config_backups"

    id = Column(Integer, primary_key=True, index=True)

    filename = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Backup file name, e.g. config.js.backup.1700000000000",
    )
    reason = Column(
        String(255),
        nullable=False,
        default="automatic",
        comment="manual / automatic / pre-restore",
    )
    created_at = Column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ConfigBackup(filename='{self.filename}', reason='{self.reason}')>"
