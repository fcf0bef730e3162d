"""Background jobs on APScheduler: monitor tick, event poll, keep-alive, weekly recompute."""
import logging
from collections.abc import Awaitable, Callable

from apscheduler.events import (EVENT_JOB_ERROR, EVENT_JOB_EXECUTED,
                                EVENT_JOB_MISSED, JobExecutionEvent)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

AsyncJob = Callable[[], Awaitable[object]]

DAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def parse_weekly_cron(spec: str, timezone: str = "UTC") -> CronTrigger:
    """Build a weekly trigger from ``"<day> HH:MM"`` (e.g. ``"fri 14:00"``)."""
    try:
        day, clock = spec.strip().lower().split()
        hour, minute = (int(part) for part in clock.split(":"))
    except ValueError as exc:
        raise ValueError(f"Invalid weekly schedule {spec!r}; expected e.g. 'fri 14:00'") from exc
    if day[:3] not in DAY_NAMES or not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid weekly schedule {spec!r}; expected e.g. 'fri 14:00'")
    return CronTrigger(day_of_week=day[:3], hour=hour, minute=minute, timezone=timezone)


async def safe_job_runner(func: AsyncJob, job_id: str) -> None:
    """Run ``func`` with logging; a failing job never kills the scheduler."""
    try:
        logger.debug("Job %s starting", job_id)
        await func()
        logger.debug("Job %s completed", job_id)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Job %s failed", job_id)


def job_listener(event: JobExecutionEvent) -> None:
    if event.code == EVENT_JOB_MISSED:
        logger.warning("Job %s missed its run time", event.job_id)
    elif event.exception:
        logger.error("Job %s raised: %s", event.job_id, event.exception)


class MonitorScheduler:
    """Owns the AsyncIOScheduler and the recurring jobs of the service."""

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_listener(
            job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def job_ids(self) -> list[str]:
        return sorted(job.id for job in self._scheduler.get_jobs())

    def add_interval_job(self, job_id: str, func: AsyncJob, seconds: float, name: str | None = None) -> None:
        self._scheduler.add_job(
            safe_job_runner,
            trigger=IntervalTrigger(seconds=seconds),
            args=(func, job_id),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=max(1, int(seconds)),
        )

    def add_weekly_job(self, job_id: str, func: AsyncJob, spec: str, name: str | None = None) -> None:
        self._scheduler.add_job(
            safe_job_runner,
            trigger=parse_weekly_cron(spec),
            args=(func, job_id),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=3600,
        )

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started with jobs: %s", ", ".join(self.job_ids()))

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler shut down")
