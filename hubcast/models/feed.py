import re
from datetime import datetime

from pydantic import field_validator
from sqlalchemy import BigInteger, DateTime
from sqlmodel import Field, SQLModel

from hubcast.models.base import TimestampMixin, UUIDMixin

# "login" (user feed) or "owner/repo" (repository feed)
_USER_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,38})$")
_REPO_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,38})/[a-z0-9_.-]{1,100}$")


def normalize_subject(subject: str) -> str:
    """
    Normalize a watched subject to its stored form.

    GitHub logins and repository names are case-insensitive, so subjects are
    stored lower-cased. Leading/trailing whitespace and slashes are dropped.

    Raises:
        ValueError: If the subject is neither "user" nor "owner/repo"
    """
    value = subject.strip().strip("/").lower()
    if _USER_RE.match(value) or _REPO_RE.match(value):
        return value
    raise ValueError(f"Invalid subject {subject!r}: expected 'user' or 'owner/repo'")


def is_repository_subject(subject: str) -> bool:
    """Check if a subject names a repository rather than a user."""
    return "/" in subject


class FeedBase(SQLModel):
    """Base fields for Feed."""

    # The thing to watch: "user" or "owner/repo"
    subject: str = Field(max_length=140, unique=True, index=True)

    # Discord destination (snowflakes do not fit in 32 bits)
    channel_id: int = Field(sa_type=BigInteger, nullable=False)
    guild_id: int | None = Field(default=None, sa_type=BigInteger)


class FeedCreate(SQLModel):
    """Schema for adding a feed."""

    subject: str
    channel_id: int
    guild_id: int | None = None

    @field_validator("subject")
    @classmethod
    def _normalize_subject(cls, value: str) -> str:
        return normalize_subject(value)

    @field_validator("channel_id")
    @classmethod
    def _positive_channel(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("channel_id must be a positive Discord snowflake")
        return value


class Feed(FeedBase, UUIDMixin, TimestampMixin, table=True):
    """A tracked (subject, channel) pairing with its delivery cursor."""

    __tablename__ = "feeds"

    # Id of the newest event already processed. NULL = never polled:
    # the first poll records the newest id and delivers nothing.
    cursor: int | None = Field(default=None, sa_type=BigInteger)

    # Conditional polling state from the last successful fetch
    etag: str | None = Field(default=None, max_length=200)
    next_poll_after: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )

    # Failure bookkeeping (operator visibility + transient backoff)
    backoff_until: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )
    consecutive_failures: int = Field(default=0, nullable=False)
    last_error: str | None = Field(default=None, max_length=2000)

    @property
    def never_polled(self) -> bool:
        return self.cursor is None
