"""
Background scheduling of collection runs.

Each collector runs on its own cron schedule (UTC). A tick that fires while
the previous run of the same collector is still in progress is dropped.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.collector import MetricsCollector
from core.exceptions import CollectionError
from core.metrics import ExporterMetrics

logger = logging.getLogger(__name__)


def run_collection(collector: MetricsCollector) -> None:
    """Scheduled entry point for one collector; run-level failures go to the scheduler."""
    try:
        collector.collect()
    except CollectionError as e:
        logger.info(f"Failed to collect {collector.kind} metrics: {e}")
        raise


class SchedulerErrorListener:
    """
    Logs scheduler failures and counts them in the cron errors counter.

    Ticks dropped because the previous run is still in progress are logged
    only; they are not errors.
    """

    def __init__(self, metrics: ExporterMetrics):
        self.metrics = metrics

    def __call__(self, event: JobEvent) -> None:
        if event.code == EVENT_JOB_MAX_INSTANCES:
            logger.info(f"Skipping run of job {event.job_id}, previous run still in progress")
            return

        logger.error(f"Job {event.job_id} raised an error: {getattr(event, 'exception', None)}")
        self.metrics.cron_errors.inc()


def create_scheduler(
    jobs: list[tuple[str, MetricsCollector]],
    metrics: ExporterMetrics,
) -> AsyncIOScheduler:
    """
    Build the scheduler for the given collectors.

    Args:
        jobs: (cron expression, collector) pairs
        metrics: Metrics holding the cron errors counter

    Returns:
        Configured, not yet started, AsyncIOScheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC")

    for schedule, collector in jobs:
        scheduler.add_job(
            run_collection,
            CronTrigger.from_crontab(schedule, timezone="UTC"),
            args=[collector],
            id=collector.kind,
            name=f"collect {collector.kind} metrics",
            max_instances=1,
            coalesce=True,
        )
        logger.debug(f"Scheduled {collector.kind} collection at '{schedule}'")

    scheduler.add_listener(SchedulerErrorListener(metrics), EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)
    return scheduler
