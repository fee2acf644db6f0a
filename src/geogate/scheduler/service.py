"""APScheduler-based background job service."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class SchedulerService:
    """
    In-process background scheduler.

    Jobs never overlap with themselves: a run that comes due while the
    previous one is still executing is dropped, and missed runs are
    coalesced into one.
    """

    def __init__(
        self,
        max_workers: int = 2,
        timezone: str = "UTC",
    ) -> None:
        """
        Initialize the scheduler service.

        Args:
            max_workers: Maximum concurrent jobs
            timezone: Scheduler timezone
        """
        self._max_workers = max_workers
        self._timezone = timezone
        self._scheduler: BackgroundScheduler | None = None

    @property
    def scheduler(self) -> BackgroundScheduler:
        """Get or create the scheduler instance."""
        if self._scheduler is None:
            self._scheduler = self._create_scheduler()
        return self._scheduler

    def _create_scheduler(self) -> BackgroundScheduler:
        """Create and configure the APScheduler instance."""
        job_defaults = {
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        }

        scheduler = BackgroundScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": ThreadPoolExecutor(max_workers=self._max_workers)},
            job_defaults=job_defaults,
            timezone=self._timezone,
        )

        logger.info(
            f"Scheduler configured with {self._max_workers} workers, "
            f"timezone={self._timezone}"
        )
        return scheduler

    def start(self) -> None:
        """Start the scheduler."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")
        else:
            logger.warning("Scheduler is already running")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: Wait for running jobs to complete
        """
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler shutdown complete")

    def add_job(
        self,
        job_id: str,
        func: Callable[..., Any],
        interval_minutes: float,
        run_immediately: bool = False,
    ) -> None:
        """
        Add an interval-based job to the scheduler.

        Args:
            job_id: Unique identifier for the job
            func: Function to execute
            interval_minutes: Minutes between runs
            run_immediately: Run the job as soon as the scheduler starts
        """
        options: dict[str, Any] = {}
        if run_immediately:
            options["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=job_id,
            name=job_id,
            replace_existing=True,
            **options,
        )
        logger.info(f"Job '{job_id}' added with {interval_minutes}m interval")

    def get_job_status(self, job_id: str) -> dict[str, Any] | None:
        """Get the status of a job, or None if not found."""
        job = self.scheduler.get_job(job_id)
        if job:
            return {
                "id": job.id,
                "name": job.name,
                # Unset until the scheduler has started
                "next_run_time": getattr(job, "next_run_time", None),
            }
        return None

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._scheduler is not None and self._scheduler.running
