"""Domain integration test fixtures."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hubcast.domain.feed_operations import feed_ops
from hubcast.models.feed import FeedCreate


@pytest.fixture
async def tracked_feed(db_session: AsyncSession):
    """A committed, never-polled feed for nabijaczleweli/cargo-update."""
    feed = await feed_ops.add(
        db_session,
        FeedCreate(subject="nabijaczleweli/cargo-update", channel_id=246390400394870784),
    )
    await db_session.commit()
    return feed
