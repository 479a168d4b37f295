"""
Recurring triggers for the league pipeline.

- Ingestion sweep: every `ingest_interval_minutes` (default 10)
- League snapshot rebuild: every `league_snapshot_interval_minutes` (default 60)
- Season snapshot rebuild: every `season_snapshot_interval_hours` (default 6)

Scheduler: APScheduler AsyncIOScheduler, one instance per job at a time.
"""
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from proclubs.config.settings import AppSettings
from proclubs.pipeline.runner import LeagueRunner


class LeagueScheduler:
    """Owns the AsyncIOScheduler and registers the three league jobs."""

    def __init__(self, runner: LeagueRunner, settings: AppSettings):
        self.runner = runner
        self.settings = settings
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    def start(self) -> None:
        """Start the scheduler. Must be called from a running event loop."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(
            timezone=self.settings.scheduler_timezone,
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )
        self._add_jobs()
        self.scheduler.start()
        self.running = True
        logger.info(f"Scheduler started with {len(self.scheduler.get_jobs())} jobs")

    def _add_jobs(self) -> None:
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            self.runner.scheduled_ingestion,
            trigger=IntervalTrigger(minutes=self.settings.ingest_interval_minutes),
            id="ingestion_sweep",
            name="Clean, fetch, ingest and trim matches",
        )
        self.scheduler.add_job(
            self.runner.scheduled_league_snapshot,
            trigger=IntervalTrigger(
                minutes=self.settings.league_snapshot_interval_minutes
            ),
            id="league_snapshot",
            name="Rebuild league snapshot",
        )
        self.scheduler.add_job(
            self.runner.scheduled_season_snapshot,
            trigger=IntervalTrigger(hours=self.settings.season_snapshot_interval_hours),
            id="season_snapshot",
            name="Rebuild season snapshot",
        )
        for job in self.scheduler.get_jobs():
            logger.info(f"Scheduled: {job.name} ({job.trigger})")

    def stop(self) -> None:
        if not self.running or self.scheduler is None:
            return
        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Scheduler stopped")
