"""Data types for GitHub API responses."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RawActivityItem:
    """One element of a GitHub events feed, before classification.

    Only the envelope is interpreted here; the type-specific payload stays an
    opaque dict until the classifier decodes it.
    """

    id: int  # Numeric event id, the ordering key for cursors
    created_at: str  # ISO 8601 timestamp
    type: str  # e.g. "PushEvent"
    actor: str
    repo: str  # owner/repo the event happened in
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RawActivityItem":
        """
        Build an item from one element of the events JSON array.

        Raises:
            ValueError: If the element has no usable numeric id. Without an id
                the item cannot be ordered against the cursor at all.
        """
        try:
            event_id = int(data["id"])
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"Event without a numeric id: {data.get('id')!r}") from e

        actor = data.get("actor")
        actor = actor if isinstance(actor, dict) else {}
        repo = data.get("repo")
        repo = repo if isinstance(repo, dict) else {}
        payload = data.get("payload")

        return cls(
            id=event_id,
            created_at=str(data.get("created_at") or ""),
            type=str(data.get("type") or ""),
            actor=str(actor.get("display_login") or actor.get("login") or ""),
            repo=str(repo.get("name") or ""),
            payload=payload if isinstance(payload, dict) else {},
        )


@dataclass
class FetchResult:
    """Result of polling one feed.

    `items` is lazy: further pages are requested only as the consumer iterates,
    and errors on later pages surface during iteration.
    """

    items: AsyncIterator[RawActivityItem]
    etag: str | None
    poll_interval: int  # Seconds before GitHub wants this feed polled again
    not_modified: bool = False  # 304: nothing changed since `etag`
