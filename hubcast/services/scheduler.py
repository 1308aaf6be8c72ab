"""Internal poll scheduler using APScheduler.

Runs the poll cycle on a fixed interval within the FastAPI process. One cycle
at a time: the interval job has max_instances=1 and coalesces missed runs,
and manual triggers share an in-process lock with the scheduled job.
"""

import asyncio
import logging
from dataclasses import asdict
from datetime import UTC, datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hubcast.config import settings
from hubcast.services.poller import FeedPoller

logger = logging.getLogger(__name__)

POLL_JOB_ID = "poll_feeds"


async def run_poll_cycle(poller: FeedPoller) -> dict[str, Any] | None:
    """
    Execute one poll cycle over all feeds.

    Returns the report dict, or None if the cycle failed before producing one.
    """
    logger.info("[scheduler] Poll: starting")

    try:
        report = await poller.poll_all()

        logger.info(
            f"[scheduler] Poll: completed "
            f"({report.feeds_polled}/{report.feeds_checked} feeds polled, "
            f"{report.feeds_failed} failed, "
            f"{report.events_delivered} delivered, "
            f"{report.duration_seconds}s)"
        )
        return asdict(report)

    except Exception as e:
        logger.exception(f"[scheduler] Poll: failed with error: {e}")
        return None


class Scheduler:
    """Manages the APScheduler instance and the poll job."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._poller: FeedPoller | None = None
        self._cycle_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def poller(self) -> FeedPoller | None:
        return self._poller

    async def _run_locked(self) -> dict[str, Any] | None:
        if self._poller is None:
            logger.warning("[scheduler] Poll: skipped (no poller configured)")
            return None
        if self._cycle_lock.locked():
            logger.info("[scheduler] Poll: skipped (a cycle is already running)")
            return None
        async with self._cycle_lock:
            return await run_poll_cycle(self._poller)

    def start(self, poller: FeedPoller) -> None:
        """Register the poller and start the interval job."""
        self._poller = poller
        poller.reset_stop()

        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        # Poll: every interval, first tick right away
        self._scheduler.add_job(
            self._run_locked,
            trigger=IntervalTrigger(seconds=settings.poll_interval_seconds),
            id=POLL_JOB_ID,
            name="Poll GitHub Feeds",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(UTC),
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started, polling every {settings.poll_interval_seconds}s "
            f"with up to {settings.poll_concurrency} feeds at once"
        )

    async def stop(self) -> None:
        """
        Gracefully shut down the scheduler.

        Running feed cycles finish the item in flight, commit its cursor and
        return; this waits for that before returning.
        """
        if self._poller is not None:
            self._poller.request_stop()
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        async with self._cycle_lock:
            pass
        logger.info("[scheduler] Stopped")

    async def trigger_now(self) -> dict[str, Any] | None:
        """
        Manually run a poll cycle immediately.

        Returns the report dict, or None if skipped (a cycle is already running,
        or no poller is configured).
        """
        return await self._run_locked()


scheduler = Scheduler()
