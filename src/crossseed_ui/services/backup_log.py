"""Backup reason bookkeeping in the dashboard database."""

from collections.abc import Callable

import structlog
from sqlalchemy.orm import Session

from crossseed_ui.models.backup import ConfigBackup

logger = structlog.get_logger()


class DatabaseBackupLog:
    """
    Records why each backup file was taken.

    Uses a short-lived session per call so it can be shared between request
    handlers and scheduled jobs.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record(self, filename: str, reason: str) -> None:
        db = self._session_factory()
        try:
            row = db.query(ConfigBackup).filter(ConfigBackup.filename == filename).first()
            if row:
                row.reason = reason
            else:
                db.add(ConfigBackup(filename=filename, reason=reason))
            db.commit()
        except Exception as e:
            db.rollback()
            # The backup file exists regardless; it will list as "automatic".
            logger.error("backup_reason_record_failed", filename=filename, error=str(e))
        finally:
            db.close()

    def reasons(self) -> dict[str, str]:
        db = self._session_factory()
        try:
            return {row.filename: row.reason for row in db.query(ConfigBackup).all()}
        finally:
            db.close()

    def forget(self, filename: str) -> None:
        db = self._session_factory()
        try:
            db.query(ConfigBackup).filter(ConfigBackup.filename == filename).delete()
            db.commit()
        finally:
            db.close()
