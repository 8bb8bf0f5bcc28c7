"""
Shared FastAPI dependencies.

Long-lived services (sync service, daemon monitor, scheduler) are built in
the application lifespan and stored on ``app.state``; these helpers hand
them to route functions.
"""

from fastapi import HTTPException, Request, status

from crossseed_ui.config import settings
from crossseed_ui.database import get_session_factory
from crossseed_ui.services.backup_log import DatabaseBackupLog
from crossseed_ui.services.config_file import ConfigFileStore
from crossseed_ui.services.connection_test import ConnectionTester
from crossseed_ui.services.daemon import DaemonMonitor
from crossseed_ui.services.prowlarr_sync import ProwlarrSyncService
from crossseed_ui.services.scheduler import JobScheduler


def config_store_from_settings() -> ConfigFileStore:
    """
    Build the store for ``CROSSSEED_CONFIG_PATH``.

    Raises:
        RuntimeError: If CROSSSEED_CONFIG_PATH is not configured
    """
    return ConfigFileStore(settings.get_config_path(), DatabaseBackupLog(get_session_factory()))


def get_config_store() -> ConfigFileStore:
    try:
        return config_store_from_settings()
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e


def get_sync_service(request: Request) -> ProwlarrSyncService:
    return request.app.state.sync_service


def get_scheduler(request: Request) -> JobScheduler | None:
    """None when the scheduler is disabled or failed to start."""
    return request.app.state.scheduler


def get_daemon_monitor(request: Request) -> DaemonMonitor:
    return request.app.state.daemon_monitor


def get_connection_tester() -> ConnectionTester:
    return ConnectionTester()
