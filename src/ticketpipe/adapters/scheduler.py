"""Periodic pipeline syncs on an APScheduler background scheduler."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from ticketpipe.domain.pipeline import Pipeline

log = getLogger(__name__)


def job_id_for(pipeline_id: str) -> str:
    return f"pipeline::{pipeline_id}"


class PipelineScheduler:
    """One interval job per pipeline; jobs of different pipelines run in parallel.

    ``max_instances=1`` and ``coalesce=True`` keep a slow pipeline from piling
    up overlapping runs. :meth:`Pipeline.sync` guards against overlap with
    manual syncs on its own.
    """

    def __init__(
        self,
        *,
        default_interval_seconds: float,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self.default_interval_seconds = default_interval_seconds
        self.scheduler = scheduler or BackgroundScheduler(timezone=UTC)
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            log.info("Pipeline scheduler started")

    def shutdown(self, *, wait: bool = True) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            log.info("Pipeline scheduler stopped")

    def schedule(self, pipeline: Pipeline, *, run_immediately: bool = True) -> None:
        interval = pipeline.definition.sync_interval_seconds or self.default_interval_seconds
        # an explicit next_run_time of None would add the job paused
        extra: dict[str, datetime] = {"next_run_time": datetime.now(UTC)} if run_immediately else {}
        self.scheduler.add_job(
            pipeline.sync,
            trigger=IntervalTrigger(seconds=interval, timezone=UTC),
            id=job_id_for(pipeline.id),
            name=f"sync {pipeline.id}",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **extra,
        )
        log.info("Scheduled pipeline %s every %.0fs", pipeline.id, interval)

    def unschedule(self, pipeline_id: str) -> bool:
        try:
            self.scheduler.remove_job(job_id_for(pipeline_id))
        except JobLookupError:
            log.warning("No scheduled job for pipeline %s", pipeline_id)
            return False
        return True

    def scheduled_ids(self) -> list[str]:
        return sorted(job.id for job in self.scheduler.get_jobs())
