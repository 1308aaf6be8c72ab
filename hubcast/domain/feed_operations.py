"""Feed store operations.

The feeds table is the only state shared between feeds and between the
daemon and the feed management commands. Every write here is a single
statement, so it is atomic per subject; within one process, writes to the
same subject are additionally serialized with a per-subject lock.

Callers own the transaction (commit/rollback), as with every domain
operation class.
"""

import asyncio
import logging
import weakref
from datetime import UTC, datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hubcast.core.exceptions import DuplicateFeed, FeedNotFound
from hubcast.models.feed import Feed, FeedCreate

logger = logging.getLogger(__name__)


def _key(subject: str) -> str:
    return subject.strip().strip("/").lower()


class FeedOperations:
    """CRUD and cursor operations for the Feed model."""

    def __init__(self) -> None:
        self.model = Feed
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, subject: str) -> asyncio.Lock:
        lock = self._locks.get(subject)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subject] = lock
        return lock

    async def list(self, db: AsyncSession) -> list[Feed]:
        """Get all feeds, ordered by subject."""
        statement = select(Feed).order_by(Feed.subject)
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, subject: str) -> Feed | None:
        """Get a single feed by subject."""
        statement = select(Feed).where(Feed.subject == _key(subject))
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def add(self, db: AsyncSession, obj_in: FeedCreate) -> Feed:
        """
        Add a new feed in the "never polled" state.

        Raises:
            DuplicateFeed: If the subject is already tracked. Detected through the
                unique constraint, so concurrent adders cannot both succeed.
        """
        async with self._lock_for(obj_in.subject):
            db_obj = Feed(**obj_in.model_dump())
            db.add(db_obj)
            try:
                await db.flush()
            except IntegrityError as e:
                await db.rollback()
                raise DuplicateFeed(obj_in.subject) from e
            await db.refresh(db_obj)
            logger.info(f"[feeds] Added {db_obj.subject} -> channel {db_obj.channel_id}")
            return db_obj

    async def remove(self, db: AsyncSession, subject: str) -> None:
        """
        Stop tracking a feed.

        Raises:
            FeedNotFound: If no feed with this subject exists
        """
        key = _key(subject)
        async with self._lock_for(key):
            result = await db.execute(delete(Feed).where(Feed.subject == key))
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise FeedNotFound(key)
            logger.info(f"[feeds] Removed {key}")

    async def advance_cursor(self, db: AsyncSession, subject: str, new_cursor: int) -> bool:
        """
        Move a feed's cursor forward.

        The write is conditional on the stored cursor being older, so the cursor
        never moves backwards even when writers race.

        Returns:
            True if the cursor changed, False if it was already at or past
            new_cursor (or the feed no longer exists)
        """
        key = _key(subject)
        async with self._lock_for(key):
            statement = (
                update(Feed)
                .where(Feed.subject == key)
                .where(or_(Feed.cursor.is_(None), Feed.cursor < new_cursor))  # type: ignore[union-attr,operator]
                .values(cursor=new_cursor, updated_at=datetime.now(UTC))
            )
            result = await db.execute(statement)
            return result.rowcount > 0  # type: ignore[attr-defined]

    async def record_poll(
        self,
        db: AsyncSession,
        subject: str,
        etag: str | None,
        next_poll_after: datetime | None,
    ) -> None:
        """Store conditional-polling state and clear failure bookkeeping."""
        key = _key(subject)
        async with self._lock_for(key):
            await db.execute(
                update(Feed)
                .where(Feed.subject == key)
                .values(
                    etag=etag,
                    next_poll_after=next_poll_after,
                    backoff_until=None,
                    consecutive_failures=0,
                    last_error=None,
                    updated_at=datetime.now(UTC),
                )
            )

    async def record_failure(
        self,
        db: AsyncSession,
        subject: str,
        error: str,
        backoff_until: datetime | None = None,
    ) -> None:
        """Record a failed cycle; the counter drives exponential backoff."""
        key = _key(subject)
        async with self._lock_for(key):
            await db.execute(
                update(Feed)
                .where(Feed.subject == key)
                .values(
                    consecutive_failures=Feed.consecutive_failures + 1,
                    last_error=error[:2000],
                    backoff_until=backoff_until,
                    updated_at=datetime.now(UTC),
                )
            )


feed_ops = FeedOperations()
