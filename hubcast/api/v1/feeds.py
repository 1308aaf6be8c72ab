"""Read-only feed status for operators.

Persistent per-feed failures (a deleted repository, a revoked channel) are
only visible here and in the logs; the daemon never removes a feed itself.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from hubcast.core.database import get_db
from hubcast.domain import feed_ops
from hubcast.models.feed import Feed

router = APIRouter(prefix="/feeds", tags=["feeds"])


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _serialize_feed(feed: Feed) -> dict[str, Any]:
    return {
        "id": str(feed.id),
        "subject": feed.subject,
        "channel_id": str(feed.channel_id),  # snowflakes overflow JS numbers
        "guild_id": str(feed.guild_id) if feed.guild_id else None,
        "cursor": str(feed.cursor) if feed.cursor is not None else None,
        "never_polled": feed.never_polled,
        "consecutive_failures": feed.consecutive_failures,
        "last_error": feed.last_error,
        "backoff_until": _iso(feed.backoff_until),
        "next_poll_after": _iso(feed.next_poll_after),
        "created_at": _iso(feed.created_at),
        "updated_at": _iso(feed.updated_at),
    }


@router.get("", response_model=list[dict])
async def list_feeds(db: AsyncSession = Depends(get_db)):
    """List all tracked feeds with their cursor and failure state."""
    feeds = await feed_ops.list(db)
    return [_serialize_feed(f) for f in feeds]


@router.get("/{subject:path}")
async def get_feed(subject: str, db: AsyncSession = Depends(get_db)):
    """Get one feed by subject ("user" or "owner/repo")."""
    feed = await feed_ops.get(db, subject)
    if not feed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Feed for {subject} not found",
        )
    return _serialize_feed(feed)
