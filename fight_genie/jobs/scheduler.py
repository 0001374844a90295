"""APScheduler-based maintenance scheduler."""

from __future__ import annotations

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from fight_genie.config import Settings
from fight_genie.service import FightGenie

log = structlog.get_logger()


class MaintenanceJobs:
    def __init__(self, settings: Settings, genie: FightGenie) -> None:
        self._settings = settings
        self._genie = genie

    async def sync_outcomes(self) -> None:
        """Grade predictions of events that have finished."""
        try:
            counts = await self._genie.sync_completed_events()
            log.info("sync_outcomes_done", **counts)
        except Exception as exc:
            log.exception("sync_outcomes_error")
            self._genie.notifier.report_job_failure("sync_outcomes", str(exc))

    async def fetch_odds(self) -> None:
        """Snapshot odds for the upcoming event."""
        try:
            rows = await self._genie.refresh_odds()
            log.info("fetch_odds_done", rows=rows)
        except Exception:
            log.exception("fetch_odds_error")

    async def prune_odds(self) -> None:
        try:
            deleted = await self._genie.repo.prune_old_odds(self._settings.odds_retention_days)
            log.info("prune_odds_done", deleted=deleted)
        except Exception:
            log.exception("prune_odds_error")

    async def sweep_cache(self) -> None:
        try:
            deleted = await self._genie.repo.prune_expired_cache()
            log.debug("sweep_cache_done", deleted=deleted)
        except Exception:
            log.exception("sweep_cache_error")

    async def expire_subscriptions(self) -> None:
        try:
            await self._genie.subscriptions.expire_stale()
        except Exception:
            log.exception("expire_subscriptions_error")


def create_scheduler(jobs: MaintenanceJobs, settings: Settings) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        jobs.sync_outcomes,
        "cron",
        hour=settings.outcome_sync_hour,
        minute=0,
        id="sync_outcomes",
        name="Grade predictions against final results",
    )

    if settings.odds_api_key:
        scheduler.add_job(
            jobs.fetch_odds,
            "interval",
            minutes=settings.odds_fetch_interval_minutes,
            id="fetch_odds",
            name="Snapshot odds for the upcoming event",
        )

    for hour in settings.maintenance_hours:
        scheduler.add_job(
            jobs.prune_odds,
            "cron",
            hour=hour,
            minute=30,
            id=f"prune_odds_{hour}",
            name="Delete old odds history",
        )

    scheduler.add_job(
        jobs.sweep_cache,
        "interval",
        hours=1,
        id="sweep_cache",
        name="Delete expired HTTP cache entries",
    )

    scheduler.add_job(
        jobs.expire_subscriptions,
        "interval",
        hours=1,
        id="expire_subscriptions",
        name="Expire lapsed event subscriptions",
    )

    return scheduler
