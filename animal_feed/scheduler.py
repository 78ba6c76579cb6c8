"""
Job scheduler built on APScheduler.

Runs the producer tick (fixed interval), the midnight cache refresh (cron)
and the startup cache check (one-shot). Every registered job body can also be
invoked synchronously through run_now(), which is how the admin trigger
reuses the scheduled refresh.
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="scheduler")

PRODUCER_JOB_ID = "stream-random-image"
DAILY_REFRESH_JOB_ID = "daily-image-cache-refresh"
STARTUP_CHECK_JOB_ID = "daily-image-cache-startup-check"


class JobScheduler:
    """Background scheduler with a registry of callable job bodies."""

    def __init__(self, timezone: str = "UTC", scheduler: Optional[BackgroundScheduler] = None) -> None:
        self.timezone = timezone
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        self._tasks: Dict[str, Callable] = {}

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def add_interval_job(self, job_id: str, func: Callable, interval_ms: int) -> str:
        """Run `func` every `interval_ms`; a tick is skipped while the previous one still runs."""
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=interval_ms / 1000.0, timezone=self.timezone),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._tasks[job_id] = func
        logger.info("Registered interval job %s every %dms", job_id, interval_ms)
        return job_id

    def add_daily_job(self, job_id: str, func: Callable, hour: int = 0, minute: int = 0) -> str:
        """Run `func` once a day at hour:minute in the scheduler timezone."""
        self._scheduler.add_job(
            func,
            trigger=CronTrigger(hour=hour, minute=minute, second=0, timezone=self.timezone),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self._tasks[job_id] = func
        logger.info("Registered daily job %s at %02d:%02d %s", job_id, hour, minute, self.timezone)
        return job_id

    def add_one_shot_job(self, job_id: str, func: Callable, delay_seconds: float = 0) -> str:
        """Run `func` once after `delay_seconds`."""
        run_date = datetime.now(self._scheduler.timezone) + timedelta(seconds=delay_seconds)
        self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            replace_existing=True,
        )
        self._tasks[job_id] = func
        logger.info("Registered one-shot job %s in %ss", job_id, delay_seconds)
        return job_id

    def run_now(self, job_id: str):
        """Invoke a registered job body synchronously and return its result."""
        func = self._tasks.get(job_id)
        if func is None:
            raise KeyError(f"Unknown job: {job_id}")
        logger.info("Running job %s on demand", job_id)
        return func()

    def cancel(self, job_id: str) -> bool:
        """Remove a job from the schedule. Returns False if it was not scheduled."""
        self._tasks.pop(job_id, None)
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.warning("Job not found: %s", job_id)
            return False
        logger.info("Removed job %s", job_id)
        return True

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started (%s)", self.timezone)

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler shut down")
