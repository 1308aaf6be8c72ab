"""
Message renderer.

Pure functions from a ClassifiedEvent to Discord message text, one per
payload type. Output depends only on the event: the timestamp prefix comes
from the event's own created_at, never from the clock.

Message shape:

    10.11.2016 08:42:18 AM: liigo pushed 1 commit to doc in owner/repo
      `4665079` Bot: Update docs <https://github.com/owner/repo/commit/4665079...>
    <https://github.com/owner/repo/compare/4d28f4b...4665079>

Links are wrapped in <...> so Discord does not expand them into embeds.
"""

from collections.abc import Callable
from datetime import UTC
from typing import Any

from hubcast.services.events.constants import (
    DEFAULT_COMMIT_MESSAGE_LENGTH,
    DISCORD_MESSAGE_LIMIT,
    ELLIPSIS,
    GITHUB_WEB_URL,
    TIMESTAMP_FORMAT,
)
from hubcast.services.events.types import (
    ClassifiedEvent,
    CommitCommentPayload,
    CreatePayload,
    DeletePayload,
    ForkPayload,
    GollumPayload,
    IssueCommentPayload,
    IssuesPayload,
    MemberPayload,
    PublicPayload,
    PullRequestPayload,
    PullRequestReviewCommentPayload,
    PullRequestReviewPayload,
    PushPayload,
    ReleasePayload,
    RenderedMessage,
    Unhandled,
    WatchPayload,
)


def truncate(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(ELLIPSIS), 0)] + ELLIPSIS


def _link(url: str) -> str:
    return f"<{url}>"


def _repo_url(repo: str) -> str:
    return f"{GITHUB_WEB_URL}/{repo}"


def _header(event: ClassifiedEvent) -> str:
    if event.created_at is None:
        raise ValueError(f"Event {event.id} has no timestamp")
    created_at = event.created_at.astimezone(UTC)
    meridiem = "AM" if created_at.hour < 12 else "PM"
    return f"{created_at.strftime(TIMESTAMP_FORMAT)} {meridiem}: {event.actor}"


def _with_links(text: str, *urls: str) -> str:
    return "\n".join([text, *(_link(url) for url in urls)])


# ─────────────────────────────────────────────────────────────────────────────
# One renderer per payload type. Each returns the text after "<time>: <actor> ".
# ─────────────────────────────────────────────────────────────────────────────


def _render_push(event: ClassifiedEvent, payload: PushPayload, max_message: int) -> str:
    count = payload.distinct_size
    noun = "commit" if count == 1 else "commits"
    lines = [f"pushed {count} {noun} to {payload.branch} in {event.repo}"]
    for commit in payload.commits:
        first_line = commit.message.splitlines()[0] if commit.message else ""
        lines.append(
            f"  `{commit.sha[:7]}` {commit.author_name}: "
            f"{truncate(first_line, max_message)} {_link(commit.url)}"
        )
    compare = f"{_repo_url(event.repo)}/compare/{payload.before}...{payload.head}"
    return _with_links("\n".join(lines), compare)


def _render_gollum(event: ClassifiedEvent, payload: GollumPayload, max_message: int) -> str:
    lines = [f"changed wiki on {event.repo}:"]
    for page in payload.pages:
        url = page.html_url
        if url.startswith("/"):
            url = GITHUB_WEB_URL + url
        lines.append(f'  {page.action} "{page.title}" {_link(url)}')
    return "\n".join(lines)


def _render_commit_comment(
    event: ClassifiedEvent, payload: CommitCommentPayload, max_message: int
) -> str:
    url = f"{_repo_url(event.repo)}/commit/{payload.commit_id}#commitcomment-{payload.comment_id}"
    return _with_links(f"commented on {payload.commit_id} in {event.repo}", url)


def _render_create(event: ClassifiedEvent, payload: CreatePayload, max_message: int) -> str:
    if payload.ref_type == "repository" or payload.ref is None:
        return _with_links(f"created repository {event.repo}", _repo_url(event.repo))
    url = f"{_repo_url(event.repo)}/compare/{payload.ref}"
    return _with_links(f"created {payload.ref_type} {payload.ref}", url)


def _render_delete(event: ClassifiedEvent, payload: DeletePayload, max_message: int) -> str:
    return f"deleted {payload.ref_type} {payload.ref}"


def _render_fork(event: ClassifiedEvent, payload: ForkPayload, max_message: int) -> str:
    return _with_links(f"forked {event.repo} to {payload.forkee}", _repo_url(payload.forkee))


def _render_issue_comment(
    event: ClassifiedEvent, payload: IssueCommentPayload, max_message: int
) -> str:
    url = (
        f"{_repo_url(event.repo)}/issues/{payload.issue_number}"
        f"#issuecomment-{payload.comment_id}"
    )
    return _with_links(
        f"{payload.action} comment to #{payload.issue_number} on {event.repo}", url
    )


def _render_issues(event: ClassifiedEvent, payload: IssuesPayload, max_message: int) -> str:
    url = f"{_repo_url(event.repo)}/issues/{payload.number}"
    return _with_links(
        f'{payload.action} #{payload.number} on {event.repo}: "{payload.title}"', url
    )


def _render_member(event: ClassifiedEvent, payload: MemberPayload, max_message: int) -> str:
    return f"{payload.action} {payload.member} to {event.repo}"


def _render_public(event: ClassifiedEvent, payload: PublicPayload, max_message: int) -> str:
    return _with_links(f"made {event.repo} public", _repo_url(event.repo))


def _render_pull_request(
    event: ClassifiedEvent, payload: PullRequestPayload, max_message: int
) -> str:
    verb = "merged" if payload.action == "closed" and payload.merged else payload.action
    url = f"{_repo_url(event.repo)}/pull/{payload.number}"
    return _with_links(f'{verb} #{payload.number} on {event.repo}: "{payload.title}"', url)


def _render_pull_request_review(
    event: ClassifiedEvent, payload: PullRequestReviewPayload, max_message: int
) -> str:
    url = f"{_repo_url(event.repo)}/pull/{payload.number}#pullrequestreview-{payload.review_id}"
    return _with_links(
        f"{payload.action} as {payload.state} #{payload.number} on {event.repo}", url
    )


def _render_pull_request_review_comment(
    event: ClassifiedEvent, payload: PullRequestReviewCommentPayload, max_message: int
) -> str:
    url = f"{_repo_url(event.repo)}/pull/{payload.number}#discussion_r{payload.comment_id}"
    return _with_links(f"{payload.action} comment to #{payload.number} on {event.repo}", url)


def _render_release(event: ClassifiedEvent, payload: ReleasePayload, max_message: int) -> str:
    url = f"{_repo_url(event.repo)}/releases/tag/{payload.tag_name}"
    return _with_links(f"{payload.action} {payload.tag_name} from {payload.target}", url)


def _render_watch(event: ClassifiedEvent, payload: WatchPayload, max_message: int) -> str:
    return _with_links(f"starred {event.repo}", f"{_repo_url(event.repo)}/stargazers")


RENDERERS: dict[type, Callable[[ClassifiedEvent, Any, int], str]] = {
    PushPayload: _render_push,
    GollumPayload: _render_gollum,
    CommitCommentPayload: _render_commit_comment,
    CreatePayload: _render_create,
    DeletePayload: _render_delete,
    ForkPayload: _render_fork,
    IssueCommentPayload: _render_issue_comment,
    IssuesPayload: _render_issues,
    MemberPayload: _render_member,
    PublicPayload: _render_public,
    PullRequestPayload: _render_pull_request,
    PullRequestReviewPayload: _render_pull_request_review,
    PullRequestReviewCommentPayload: _render_pull_request_review_comment,
    ReleasePayload: _render_release,
    WatchPayload: _render_watch,
}


# ─────────────────────────────────────────────────────────────────────────────
# Entry points
# ─────────────────────────────────────────────────────────────────────────────


def render_body(
    event: ClassifiedEvent,
    commit_message_max_length: int = DEFAULT_COMMIT_MESSAGE_LENGTH,
) -> str:
    """
    Render the message text for a classified event.

    The result never exceeds Discord's message limit: longer bodies are cut
    and end with an ellipsis. Messages are never split in two.

    Raises:
        ValueError: For Unhandled events, which are never delivered
    """
    if isinstance(event.payload, Unhandled):
        raise ValueError(
            f"Cannot render unhandled event {event.id} "
            f"({event.payload.event_type}: {event.payload.reason})"
        )

    renderer = RENDERERS[type(event.payload)]
    text = renderer(event, event.payload, commit_message_max_length)
    return truncate(f"{_header(event)} {text}", DISCORD_MESSAGE_LIMIT)


def render(
    event: ClassifiedEvent,
    channel_id: int,
    commit_message_max_length: int = DEFAULT_COMMIT_MESSAGE_LENGTH,
) -> RenderedMessage:
    """Render an event into a message addressed to a Discord channel."""
    return RenderedMessage(
        channel_id=channel_id,
        body=render_body(event, commit_message_max_length),
        event_id=event.id,
    )


def describe_unhandled(event: ClassifiedEvent) -> str:
    """One-line log description of an event that will not be delivered."""
    if not isinstance(event.payload, Unhandled):
        raise ValueError(f"Event {event.id} is deliverable, not unhandled")
    if event.payload.reason == "unknown_type":
        return (
            f"{event.actor} invoked an unsupported event on {event.repo}: "
            f"{event.payload.event_type}"
        )
    return f"malformed {event.payload.event_type} {event.id} on {event.repo}"
