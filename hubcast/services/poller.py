"""Feed poller: one poll cycle over every tracked feed.

Per feed the cycle moves Idle → Fetching → Filtering → Dispatching →
Committing → Idle. Delivery is sequential within a feed and the cursor is
committed after every resolved item, so a crash or a halted cycle resumes
exactly at the first undelivered event (at-least-once delivery).

Feeds are independent: they run concurrently up to `poll_concurrency`, each
under an outer timeout, and nothing one feed raises reaches another.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hubcast.config import settings
from hubcast.domain.feed_operations import feed_ops
from hubcast.models.feed import Feed
from hubcast.services.discord.exceptions import DeliveryRejected, DeliveryUnavailable
from hubcast.services.events import classify, describe_unhandled, render
from hubcast.services.events.types import RenderedMessage
from hubcast.services.github.exceptions import (
    GitHubRepoRenamed,
    SourceRejected,
    SourceUnavailable,
)
from hubcast.services.github.types import FetchResult, RawActivityItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Cursor stored after observing an empty feed; GitHub event ids are positive
EMPTY_FEED_CURSOR = 0


class EventSource(Protocol):
    async def fetch(
        self, subject: str, cursor: int | None, etag: str | None = None
    ) -> FetchResult: ...


class DeliveryClient(Protocol):
    async def send(self, message: RenderedMessage) -> None: ...


class FeedState(str, Enum):
    """Where a feed's cycle got to."""

    IDLE = "idle"
    FETCHING = "fetching"
    FILTERING = "filtering"
    DISPATCHING = "dispatching"
    COMMITTING = "committing"


class CycleOutcome(str, Enum):
    COMPLETED = "completed"
    NOT_MODIFIED = "not_modified"
    FIRST_POLL = "first_poll"
    TOO_EARLY = "too_early"
    SOURCE_UNAVAILABLE = "source_unavailable"
    SOURCE_REJECTED = "source_rejected"
    DELIVERY_HALTED = "delivery_halted"
    STOPPED = "stopped"
    TIMEOUT = "timeout"
    ERROR = "error"


FAILED_OUTCOMES = {
    CycleOutcome.SOURCE_UNAVAILABLE,
    CycleOutcome.SOURCE_REJECTED,
    CycleOutcome.DELIVERY_HALTED,
    CycleOutcome.TIMEOUT,
    CycleOutcome.ERROR,
}


@dataclass
class FeedCycleReport:
    """What happened to one feed in one cycle."""

    subject: str
    outcome: CycleOutcome = CycleOutcome.COMPLETED
    state: FeedState = FeedState.IDLE  # Last state entered
    fetched: int = 0
    delivered: int = 0
    unhandled: int = 0
    rejected: int = 0
    cursor_before: int | None = None
    cursor_after: int | None = None
    error: str | None = None


@dataclass
class PollReport:
    """Result summary for logging and the manual trigger endpoint."""

    feeds_checked: int = 0
    feeds_polled: int = 0
    feeds_skipped: int = 0
    feeds_failed: int = 0
    events_delivered: int = 0
    events_unhandled: int = 0
    events_rejected: int = 0
    duration_seconds: float = 0.0
    feeds: list[FeedCycleReport] = field(default_factory=list)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def backoff_seconds(
    failures: int,
    retry_after: float | None = None,
    base: float | None = None,
    maximum: float | None = None,
) -> float:
    """
    Exponential backoff after `failures` consecutive transient failures.

    min(base * 2**(failures - 1), maximum), or the server's retry_after when
    that is larger.
    """
    base = settings.source_backoff_base_seconds if base is None else base
    maximum = settings.source_backoff_max_seconds if maximum is None else maximum
    delay = min(base * 2 ** max(failures - 1, 0), maximum)
    if retry_after is not None and retry_after > delay:
        return retry_after
    return delay


def order_new_items(items: Sequence[RawActivityItem], cursor: int) -> list[RawActivityItem]:
    """Drop items at or below the cursor (and repeats), oldest first."""
    unique = {item.id: item for item in items if item.id > cursor}
    return [unique[item_id] for item_id in sorted(unique)]


class FeedPoller:
    """Runs poll cycles: fetch, filter, classify, render, deliver, commit."""

    def __init__(
        self,
        source: EventSource,
        delivery: DeliveryClient,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        concurrency: int | None = None,
        feed_timeout: float | None = None,
    ):
        if session_maker is None:
            from hubcast.core.database import async_session_maker

            session_maker = async_session_maker
        self.source = source
        self.delivery = delivery
        self.session_maker = session_maker
        self.concurrency = concurrency or settings.poll_concurrency
        self.feed_timeout = feed_timeout or settings.feed_timeout_seconds
        self._stop = asyncio.Event()

    # ─────────────────────────────────────────────────────────────────────────
    # Shutdown
    # ─────────────────────────────────────────────────────────────────────────

    def request_stop(self) -> None:
        """Ask running cycles to stop after the item in flight."""
        self._stop.set()

    def reset_stop(self) -> None:
        self._stop.clear()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence: every write is its own committed transaction
    # ─────────────────────────────────────────────────────────────────────────

    async def _write(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        async with self.session_maker() as db:
            result = await operation(db, *args)
            await db.commit()
            return result

    async def load_feeds(self) -> list[Feed]:
        async with self.session_maker() as db:
            return await feed_ops.list(db)

    # ─────────────────────────────────────────────────────────────────────────
    # One feed
    # ─────────────────────────────────────────────────────────────────────────

    async def poll_feed(self, feed: Feed, now: datetime | None = None) -> FeedCycleReport:
        """
        Run one cycle for one feed.

        `feed` is a detached snapshot; only cursor and poll bookkeeping are
        written back, each through feed_ops.

        Source errors are handled here (backoff, last_error). Anything else
        propagates to poll_all's per-feed boundary.
        """
        now = now or datetime.now(UTC)
        subject = feed.subject
        report = FeedCycleReport(
            subject=subject,
            cursor_before=feed.cursor,
            cursor_after=feed.cursor,
        )

        for gate, label in (
            (_as_utc(feed.backoff_until), "backing off"),
            (_as_utc(feed.next_poll_after), "poll interval"),
        ):
            if gate is not None and gate > now:
                logger.debug(
                    f"[poller] {subject}: Too early to re-poll ({label} until {gate:%H:%M:%S})"
                )
                report.outcome = CycleOutcome.TOO_EARLY
                return report

        # Fetching
        report.state = FeedState.FETCHING
        try:
            result = await self.source.fetch(subject, feed.cursor, feed.etag)
            items = [] if result.not_modified else [item async for item in result.items]
        except SourceUnavailable as e:
            return await self._source_unavailable(feed, report, e, now)
        except SourceRejected as e:
            return await self._source_rejected(feed, report, e)

        report.fetched = len(items)
        next_poll_after = now + timedelta(seconds=result.poll_interval)

        if result.not_modified:
            logger.debug(f"[poller] {subject}: not modified")
            await self._write(feed_ops.record_poll, subject, result.etag, next_poll_after)
            report.outcome = CycleOutcome.NOT_MODIFIED
            report.state = FeedState.IDLE
            return report

        # First observation: everything already visible counts as seen
        if feed.cursor is None:
            report.outcome = CycleOutcome.FIRST_POLL
            if items:
                newest = max(item.id for item in items)
                report.state = FeedState.COMMITTING
                await self._write(feed_ops.advance_cursor, subject, newest)
                report.cursor_after = newest
                logger.info(
                    f"[poller] {subject}: first poll, skipping {len(items)} existing events "
                    f"(cursor -> {newest})"
                )
            else:
                # Nothing visible yet, so everything that shows up later is new
                report.state = FeedState.COMMITTING
                await self._write(feed_ops.advance_cursor, subject, EMPTY_FEED_CURSOR)
                report.cursor_after = EMPTY_FEED_CURSOR
                logger.info(f"[poller] {subject}: first poll, feed is empty")
            await self._write(feed_ops.record_poll, subject, result.etag, next_poll_after)
            report.state = FeedState.IDLE
            return report

        # Filtering
        report.state = FeedState.FILTERING
        pending = order_new_items(items, feed.cursor)
        if pending:
            logger.info(f"[poller] {subject}: {len(pending)} new events")

        # Dispatching / Committing, one item at a time
        for index, item in enumerate(pending):
            if self._stop.is_set():
                logger.info(
                    f"[poller] {subject}: stop requested, {len(pending) - index} events left "
                    f"for the next cycle (cursor at {report.cursor_after})"
                )
                report.outcome = CycleOutcome.STOPPED
                report.state = FeedState.IDLE
                return report

            report.state = FeedState.DISPATCHING
            try:
                await self._dispatch(feed, item, report)
            except DeliveryUnavailable as e:
                logger.warning(
                    f"[poller] {subject}: halting at event {item.id}, "
                    f"{len(pending) - index} events left for the next cycle: {e}"
                )
                await self._write(feed_ops.record_failure, subject, f"Delivery failed: {e}", None)
                report.outcome = CycleOutcome.DELIVERY_HALTED
                report.error = str(e)
                report.state = FeedState.IDLE
                return report

            report.state = FeedState.COMMITTING
            await self._write(feed_ops.advance_cursor, subject, item.id)
            report.cursor_after = item.id

        # Only a fully drained feed may store the new ETag; a halted one must
        # see the same events again on the next request.
        report.state = FeedState.COMMITTING
        await self._write(feed_ops.record_poll, subject, result.etag, next_poll_after)
        report.state = FeedState.IDLE
        return report

    async def _dispatch(self, feed: Feed, item: RawActivityItem, report: FeedCycleReport) -> None:
        """Classify, render and send one item. Raises DeliveryUnavailable only."""
        event = classify(item)
        if event.is_unhandled:
            logger.info(f"[poller] {feed.subject}: not delivering {describe_unhandled(event)}")
            report.unhandled += 1
            return

        message = render(event, feed.channel_id, settings.commit_message_max_length)
        try:
            await self.delivery.send(message)
        except DeliveryRejected as e:
            logger.error(
                f"[poller] {feed.subject}: event {item.id} ({item.type}) rejected by "
                f"channel {feed.channel_id}, skipping: {e}"
            )
            report.rejected += 1
            return
        report.delivered += 1

    async def _source_unavailable(
        self,
        feed: Feed,
        report: FeedCycleReport,
        error: SourceUnavailable,
        now: datetime,
    ) -> FeedCycleReport:
        retry_after = error.retry_after
        if error.rate_limit_reset:
            until_reset = error.rate_limit_reset - now.timestamp()
            retry_after = max(retry_after or 0.0, until_reset)

        delay = backoff_seconds(feed.consecutive_failures + 1, retry_after)
        backoff_until = now + timedelta(seconds=delay)
        logger.warning(
            f"[poller] {feed.subject}: GitHub unavailable, backing off {delay:.0f}s "
            f"(failure {feed.consecutive_failures + 1}): {error}"
        )
        await self._write(feed_ops.record_failure, feed.subject, str(error), backoff_until)

        report.outcome = CycleOutcome.SOURCE_UNAVAILABLE
        report.error = str(error)
        report.state = FeedState.IDLE
        return report

    async def _source_rejected(
        self,
        feed: Feed,
        report: FeedCycleReport,
        error: SourceRejected,
    ) -> FeedCycleReport:
        hint = ""
        if isinstance(error, GitHubRepoRenamed) and error.new_full_name:
            hint = f"; re-add the feed as {error.new_full_name}"
        logger.error(
            f"[poller] {feed.subject}: rejected by GitHub "
            f"(HTTP {error.status_code}, channel {feed.channel_id}, cursor {feed.cursor}): "
            f"{error}{hint}"
        )
        await self._write(feed_ops.record_failure, feed.subject, f"{error}{hint}", None)

        report.outcome = CycleOutcome.SOURCE_REJECTED
        report.error = str(error)
        report.state = FeedState.IDLE
        return report

    # ─────────────────────────────────────────────────────────────────────────
    # All feeds
    # ─────────────────────────────────────────────────────────────────────────

    async def _guarded(self, feed: Feed, semaphore: asyncio.Semaphore) -> FeedCycleReport:
        async with semaphore:
            if self._stop.is_set():
                return FeedCycleReport(
                    subject=feed.subject,
                    outcome=CycleOutcome.STOPPED,
                    cursor_before=feed.cursor,
                    cursor_after=feed.cursor,
                )
            try:
                return await asyncio.wait_for(self.poll_feed(feed), timeout=self.feed_timeout)
            except TimeoutError:
                logger.error(f"[poller] {feed.subject}: cycle timed out after {self.feed_timeout}s")
                return FeedCycleReport(
                    subject=feed.subject,
                    outcome=CycleOutcome.TIMEOUT,
                    cursor_before=feed.cursor,
                    error=f"Timed out after {self.feed_timeout}s",
                )
            except Exception as e:
                logger.exception(f"[poller] {feed.subject}: cycle failed with error: {e}")
                await self._record_error(feed, e)
                return FeedCycleReport(
                    subject=feed.subject,
                    outcome=CycleOutcome.ERROR,
                    cursor_before=feed.cursor,
                    error=str(e),
                )

    async def _record_error(self, feed: Feed, error: Exception) -> None:
        """Surface an unexpected cycle failure in last_error."""
        try:
            await self._write(
                feed_ops.record_failure, feed.subject, f"Cycle failed: {error!r}", None
            )
        except Exception:
            logger.exception(f"[poller] {feed.subject}: could not record cycle failure")

    async def poll_all(self) -> PollReport:
        """Run one cycle over every tracked feed."""
        start = time.monotonic()
        feeds = await self.load_feeds()
        report = PollReport(feeds_checked=len(feeds))

        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(self._guarded(feed, semaphore) for feed in feeds))

        for cycle in results:
            report.feeds.append(cycle)
            if cycle.outcome in (CycleOutcome.TOO_EARLY, CycleOutcome.STOPPED):
                report.feeds_skipped += 1
            else:
                report.feeds_polled += 1
            if cycle.outcome in FAILED_OUTCOMES:
                report.feeds_failed += 1
            report.events_delivered += cycle.delivered
            report.events_unhandled += cycle.unhandled
            report.events_rejected += cycle.rejected

        report.duration_seconds = round(time.monotonic() - start, 2)
        return report
