"""Mock object factories for unit tests.

Creates consistent mock objects that match the real model shapes.
Used in unit tests where the database is fully mocked.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from unittest.mock import MagicMock


def make_mock_feed(**overrides: object) -> MagicMock:
    feed = MagicMock()
    feed.id = overrides.get("id", uuid.uuid4())
    feed.subject = overrides.get("subject", "nabijaczleweli/cargo-update")
    feed.channel_id = overrides.get("channel_id", 246390400394870784)
    feed.guild_id = overrides.get("guild_id")
    feed.cursor = overrides.get("cursor")
    feed.etag = overrides.get("etag")
    feed.next_poll_after = overrides.get("next_poll_after")
    feed.backoff_until = overrides.get("backoff_until")
    feed.consecutive_failures = overrides.get("consecutive_failures", 0)
    feed.last_error = overrides.get("last_error")
    feed.never_polled = feed.cursor is None
    feed.created_at = overrides.get("created_at", datetime.now(UTC))
    feed.updated_at = overrides.get("updated_at", datetime.now(UTC))
    return feed


def mock_scalars_result(values: list) -> MagicMock:
    """Create a mock execute() result that yields values via .scalars().all()."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    result.scalars.return_value.first.return_value = values[0] if values else None
    return result


def mock_scalar_result(value: object) -> MagicMock:
    """Create a mock execute() result that yields a single value."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar.return_value = value
    return result


def mock_rowcount_result(rowcount: int) -> MagicMock:
    """Create a mock execute() result for an UPDATE/DELETE statement."""
    result = MagicMock()
    result.rowcount = rowcount
    return result
