"""Classified event types.

One frozen dataclass per recognised GitHub event type, plus `Unhandled` for
everything the classifier could not (or would not) decode. `EventPayload` is
the closed union of all of them; the renderer has one function per member.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

UnhandledReason = Literal["unknown_type", "decode_error"]


@dataclass(frozen=True)
class Commit:
    """One commit embedded in a push, in the order GitHub reports it (oldest first)."""

    sha: str
    author_name: str
    author_email: str
    message: str
    distinct: bool
    url: str


@dataclass(frozen=True)
class WikiPage:
    """One wiki page touched by a gollum event."""

    page_name: str
    title: str
    action: str  # "created" or "edited"
    sha: str
    html_url: str


@dataclass(frozen=True)
class PushPayload:
    ref: str  # e.g. "refs/heads/main"
    before: str
    head: str
    size: int
    distinct_size: int
    commits: list[Commit] = field(default_factory=list)

    @property
    def branch(self) -> str:
        return self.ref.removeprefix("refs/heads/").removeprefix("refs/tags/")


@dataclass(frozen=True)
class GollumPayload:
    pages: list[WikiPage] = field(default_factory=list)


@dataclass(frozen=True)
class CommitCommentPayload:
    comment_id: int
    commit_id: str
    body: str


@dataclass(frozen=True)
class CreatePayload:
    ref_type: str  # "repository", "branch" or "tag"
    ref: str | None  # None when a repository was created
    master_branch: str
    description: str


@dataclass(frozen=True)
class DeletePayload:
    ref_type: str
    ref: str


@dataclass(frozen=True)
class ForkPayload:
    forkee: str  # full name of the new fork


@dataclass(frozen=True)
class IssueCommentPayload:
    action: str
    issue_number: int
    comment_id: int
    body: str


@dataclass(frozen=True)
class IssuesPayload:
    action: str
    number: int
    title: str
    body: str
    labels: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MemberPayload:
    action: str
    member: str


@dataclass(frozen=True)
class PublicPayload:
    pass


@dataclass(frozen=True)
class PullRequestPayload:
    action: str
    number: int
    title: str
    body: str
    merged: bool


@dataclass(frozen=True)
class PullRequestReviewPayload:
    action: str
    number: int
    state: str
    body: str
    review_id: int


@dataclass(frozen=True)
class PullRequestReviewCommentPayload:
    action: str
    number: int
    body: str
    comment_id: int


@dataclass(frozen=True)
class ReleasePayload:
    action: str
    tag_name: str
    target: str
    draft: bool
    prerelease: bool
    name: str | None = None
    body: str | None = None


@dataclass(frozen=True)
class WatchPayload:
    action: str  # GitHub only ever sends "started"


@dataclass(frozen=True)
class Unhandled:
    """An event that is seen (it moves the cursor) but never delivered."""

    event_type: str
    reason: UnhandledReason


EventPayload = (
    PushPayload
    | GollumPayload
    | CommitCommentPayload
    | CreatePayload
    | DeletePayload
    | ForkPayload
    | IssueCommentPayload
    | IssuesPayload
    | MemberPayload
    | PublicPayload
    | PullRequestPayload
    | PullRequestReviewPayload
    | PullRequestReviewCommentPayload
    | ReleasePayload
    | WatchPayload
    | Unhandled
)


@dataclass(frozen=True)
class ClassifiedEvent:
    """A decoded activity item. `created_at` is None only for Unhandled events."""

    id: int
    created_at: datetime | None
    actor: str
    repo: str
    payload: EventPayload

    @property
    def is_unhandled(self) -> bool:
        return isinstance(self.payload, Unhandled)


@dataclass(frozen=True)
class RenderedMessage:
    """A delivery-ready message for one Discord channel."""

    channel_id: int
    body: str
    event_id: int
