"""APScheduler-based periodic sync.

Runs a full product sync for every supplier at a fixed interval. Each run
opens its own database session; the process-wide run guard keeps a
scheduled run from overlapping one started through the API.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.services.sync_service import SyncOrchestrator, SyncRun, get_run_guard

logger = structlog.get_logger(__name__)

SYNC_JOB_ID = "supplier_sync"


class SyncScheduler:
    """Manages the periodic supplier sync job.

    This scheduler:
    - Starts and stops the background job
    - Runs one sync per tick for the configured source
    - Logs failures without stopping the scheduler
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        interval_minutes: int,
        source: str = "both",
    ):
        """Initialize sync scheduler.

        Args:
            db_session_factory: Async session factory for database access
            interval_minutes: Minutes between two runs
            source: Source selection passed to every run
        """
        if interval_minutes < 1:
            raise ValueError("interval_minutes must be at least 1")

        self.db_session_factory = db_session_factory
        self.interval_minutes = interval_minutes
        self.source = source
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="sync_scheduler")
        self._job: Optional[Job] = None

    def start(self, initial_delay_seconds: int = 60) -> None:
        """Start the scheduler and register the sync job.

        The first run happens after ``initial_delay_seconds`` so the app
        finishes starting before any supplier traffic.
        """
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return

        self._job = self.scheduler.add_job(
            func=self._run_sync_wrapper,
            trigger=IntervalTrigger(minutes=self.interval_minutes, timezone="UTC"),
            id=SYNC_JOB_ID,
            name=f"Sync {self.source}",
            replace_existing=True,
            max_instances=1,
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=initial_delay_seconds),
        )
        self.scheduler.start()
        self.logger.info(
            "scheduler_started",
            source=self.source,
            interval_minutes=self.interval_minutes,
            next_run=self._job.next_run_time.isoformat() if self._job.next_run_time else None,
        )

    def stop(self) -> None:
        """Stop the scheduler, waiting for a running job to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    async def _run_sync_wrapper(self) -> None:
        """Entry point called by APScheduler; never lets an exception escape."""
        try:
            await self.run_sync()
        except Exception as e:
            self.logger.error("sync_job_failed", source=self.source, error=str(e), exc_info=True)

    async def run_sync(self) -> SyncRun:
        """Execute one scheduled sync with the stored category selection."""
        self.logger.info("starting_sync_job", source=self.source)

        async with self.db_session_factory() as db:
            orchestrator = SyncOrchestrator(db, run_guard=get_run_guard())
            run = await orchestrator.run_sync(self.source)

        self.logger.info(
            "sync_job_completed",
            source=self.source,
            status=run.status.value,
            products_synced=run.products_synced,
            errors=len(run.errors),
        )
        return run

    def get_job_status(self) -> dict:
        job = self.scheduler.get_job(SYNC_JOB_ID) if self._job else None
        if not job:
            return {}
        return {
            "job_id": job.id,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger),
        }

    def is_running(self) -> bool:
        return self.scheduler.running
