"""Unit tests for the poll scheduler."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hubcast.services.poller import PollReport
from hubcast.services.scheduler import POLL_JOB_ID, Scheduler, run_poll_cycle


def _mock_poller(report: PollReport | None = None, error: Exception | None = None) -> MagicMock:
    poller = MagicMock()
    if error is not None:
        poller.poll_all = AsyncMock(side_effect=error)
    else:
        poller.poll_all = AsyncMock(return_value=report or PollReport(feeds_checked=1))
    return poller


class TestRunPollCycle:
    """Tests for one scheduled cycle."""

    @pytest.mark.asyncio
    async def test_returns_report_dict(self):
        poller = _mock_poller(PollReport(feeds_checked=3, events_delivered=7))

        result = await run_poll_cycle(poller)

        assert result["feeds_checked"] == 3
        assert result["events_delivered"] == 7
        assert result["feeds"] == []

    @pytest.mark.asyncio
    async def test_failure_returns_none(self):
        result = await run_poll_cycle(_mock_poller(error=RuntimeError("db down")))
        assert result is None


class TestScheduler:
    """Tests for the scheduler lifecycle and manual triggers."""

    @pytest.mark.asyncio
    async def test_trigger_without_poller(self):
        assert await Scheduler().trigger_now() is None

    @pytest.mark.asyncio
    async def test_trigger_runs_cycle(self):
        sched = Scheduler()
        poller = _mock_poller()
        with patch("hubcast.services.scheduler.settings.scheduler_enabled", False):
            sched.start(poller)

        result = await sched.trigger_now()

        assert result["feeds_checked"] == 1
        poller.poll_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trigger_skipped_while_cycle_running(self):
        sched = Scheduler()
        poller = _mock_poller()
        with patch("hubcast.services.scheduler.settings.scheduler_enabled", False):
            sched.start(poller)

        async with sched._cycle_lock:
            result = await sched.trigger_now()

        assert result is None
        poller.poll_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_disabled(self):
        sched = Scheduler()
        poller = _mock_poller()

        with patch("hubcast.services.scheduler.settings.scheduler_enabled", False):
            sched.start(poller)

        assert sched.running is False
        assert sched.poller is poller
        poller.reset_stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        sched = Scheduler()
        poller = _mock_poller()

        with (
            patch("hubcast.services.scheduler.settings.scheduler_enabled", True),
            patch("hubcast.services.scheduler.settings.poll_interval_seconds", 3600),
        ):
            sched.start(poller)

        assert sched.running is True
        job = sched._scheduler.get_job(POLL_JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True

        await sched.stop()

        assert sched.running is False
        poller.request_stop.assert_called_once()
