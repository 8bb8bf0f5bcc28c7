"""
Background job scheduler for CrossSeed UI.

Two fixed-interval jobs run on the application's event loop:
- the Prowlarr sync due-check (runs once at start-up, then every
  ``PROWLARR_CHECK_INTERVAL_SECONDS``)
- the daemon health probe (every ``DAEMON_PROBE_INTERVAL_SECONDS``)

``JobScheduler`` is created and started by the application lifespan and
kept on ``app.state``; there is no module-level instance.
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from crossseed_ui.services.daemon import DaemonMonitor
from crossseed_ui.services.prowlarr_sync import ProwlarrSyncService

logger = structlog.get_logger()

PROWLARR_JOB_ID = "prowlarr_sync_check"
DAEMON_JOB_ID = "daemon_health_probe"


class SchedulerError(Exception):
    """Base exception for scheduler lifecycle errors."""

    pass


class JobScheduler:
    """
    Owns the APScheduler instance and the two periodic jobs.

    Jobs catch and log their own failures, so a failed tick never stops
    later ticks.
    """

    def __init__(
        self,
        sync_service: ProwlarrSyncService,
        daemon_monitor: DaemonMonitor,
        prowlarr_interval_seconds: int = 60,
        daemon_interval_seconds: int = 30,
    ) -> None:
        self.sync_service = sync_service
        self.daemon_monitor = daemon_monitor
        self.prowlarr_interval_seconds = prowlarr_interval_seconds
        self.daemon_interval_seconds = daemon_interval_seconds
        self.scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def _create_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 30,
            },
            timezone="UTC",
        )
        scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
        scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)
        return scheduler

    def _job_executed_listener(self, event: Any) -> None:
        logger.debug("scheduler_job_executed", job_id=event.job_id)

    def _job_error_listener(self, event: Any) -> None:
        logger.error(
            "scheduler_job_error",
            job_id=event.job_id,
            exception=str(event.exception),
            traceback=event.traceback,
        )

    async def start(self) -> None:
        """
        Create the scheduler and register both jobs.

        Raises:
            SchedulerError: If already running
        """
        if self.running:
            raise SchedulerError("Scheduler is already running")

        self.scheduler = self._create_scheduler()
        now = datetime.now(UTC)
        self.scheduler.add_job(
            self.run_prowlarr_check,
            "interval",
            seconds=self.prowlarr_interval_seconds,
            id=PROWLARR_JOB_ID,
            name="Prowlarr sync due-check",
            next_run_time=now,
        )
        self.scheduler.add_job(
            self.run_daemon_probe,
            "interval",
            seconds=self.daemon_interval_seconds,
            id=DAEMON_JOB_ID,
            name="Daemon health probe",
            next_run_time=now,
        )
        self.scheduler.start()
        logger.info(
            "scheduler_started",
            prowlarr_interval_seconds=self.prowlarr_interval_seconds,
            daemon_interval_seconds=self.daemon_interval_seconds,
        )

    async def stop(self, wait: bool = False) -> None:
        if not self.running:
            logger.debug("scheduler_stop_skipped_not_running")
            return
        self.scheduler.shutdown(wait=wait)
        self.scheduler = None
        logger.info("scheduler_stopped")

    async def run_prowlarr_check(self) -> None:
        try:
            await self.sync_service.run_scheduled()
        except Exception as e:
            logger.error("prowlarr_sync_check_failed", error=str(e), exc_info=True)

    async def run_daemon_probe(self) -> None:
        try:
            await self.daemon_monitor.refresh()
        except Exception as e:
            logger.error("daemon_probe_job_failed", error=str(e), exc_info=True)

    def get_status(self) -> dict[str, Any]:
        if not self.running:
            return {"running": False, "jobs": []}

        return {
            "running": True,
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                }
                for job in self.scheduler.get_jobs()
            ],
        }
