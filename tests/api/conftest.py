"""API test fixtures.

The app is driven in-process through httpx's ASGITransport. The lifespan
does not run, so no scheduler or remote client is started; get_db is pointed
at the temporary feed store.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from hubcast.domain.feed_operations import feed_ops
from hubcast.models.feed import FeedCreate

# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def api_client(session_maker):
    """HTTP client whose requests use the temporary feed store."""
    from hubcast.core.database import get_db
    from hubcast.main import app

    async def override_db():
        async with session_maker() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ─────────────────────────────────────────────────────────────────────────────
# Entities
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def test_feeds(session_maker):
    """Two feeds: a polled repository feed with an error and a fresh user feed."""
    async with session_maker() as db:
        await feed_ops.add(
            db,
            FeedCreate(
                subject="nabijaczleweli/cargo-update",
                channel_id=246390400394870784,
                guild_id=246390400394870000,
            ),
        )
        await feed_ops.add(db, FeedCreate(subject="liigo", channel_id=246390400394870785))
        await feed_ops.advance_cursor(db, "nabijaczleweli/cargo-update", 4862421395)
        await feed_ops.record_failure(
            db, "nabijaczleweli/cargo-update", "Subject not found on GitHub"
        )
        await db.commit()
