"""
Event classifier.

Turns a RawActivityItem into a ClassifiedEvent by dispatching on the GitHub
event type. Each recognised type has a decoder that reads the payload
strictly: a missing key or a value of the wrong type is a decode error, and
the item classifies to Unhandled(reason="decode_error") instead of raising.
Unknown types classify to Unhandled(reason="unknown_type").
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from hubcast.services.events.constants import GITHUB_WEB_URL
from hubcast.services.events.types import (
    ClassifiedEvent,
    Commit,
    CommitCommentPayload,
    CreatePayload,
    DeletePayload,
    EventPayload,
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
    Unhandled,
    UnhandledReason,
    WatchPayload,
    WikiPage,
)
from hubcast.services.github.types import RawActivityItem

logger = logging.getLogger(__name__)

# Errors a decoder may raise on a malformed payload
DECODE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, OverflowError)

Decoder = Callable[[dict[str, Any], str], EventPayload]


# ─────────────────────────────────────────────────────────────────────────────
# Strict field readers
# ─────────────────────────────────────────────────────────────────────────────


def _str(data: dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"{key!r} is {type(value).__name__}, expected str")
    return value


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"{key!r} is {type(value).__name__}, expected str or null")
    return value


def _int(data: dict[str, Any], key: str) -> int:
    value = data[key]
    # bool is an int subclass; GitHub never means one as the other
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key!r} is {type(value).__name__}, expected int")
    return value


def _opt_int(data: dict[str, Any], key: str, default: int) -> int:
    return _int(data, key) if key in data else default


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise TypeError(f"{key!r} is {type(value).__name__}, expected bool")
    return value


def _obj(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data[key]
    if not isinstance(value, dict):
        raise TypeError(f"{key!r} is {type(value).__name__}, expected object")
    return value


def _text(data: dict[str, Any], key: str) -> str:
    """Free text (bodies, descriptions): absent or null reads as empty."""
    return _opt_str(data, key) or ""


def parse_timestamp(value: str) -> datetime:
    """Parse GitHub's ISO 8601 timestamps ("2016-11-10T08:42:18Z") as aware UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


# ─────────────────────────────────────────────────────────────────────────────
# Decoders, one per event type
# ─────────────────────────────────────────────────────────────────────────────


def _decode_push(payload: dict[str, Any], repo: str) -> PushPayload:
    commits = []
    for raw in payload.get("commits") or []:
        author = _obj(raw, "author")
        sha = _str(raw, "sha")
        commits.append(
            Commit(
                sha=sha,
                author_name=_str(author, "name"),
                author_email=_text(author, "email"),
                message=_str(raw, "message"),
                distinct=bool(raw.get("distinct", True)),
                url=f"{GITHUB_WEB_URL}/{repo}/commit/{sha}",
            )
        )

    # Newer API versions can omit the commit list and counts
    size = _opt_int(payload, "size", len(commits))
    return PushPayload(
        ref=_str(payload, "ref"),
        before=_str(payload, "before"),
        head=_str(payload, "head"),
        size=size,
        distinct_size=_opt_int(payload, "distinct_size", size),
        commits=commits,
    )


def _decode_gollum(payload: dict[str, Any], repo: str) -> GollumPayload:
    pages = [
        WikiPage(
            page_name=_str(page, "page_name"),
            title=_str(page, "title"),
            action=_str(page, "action"),
            sha=_text(page, "sha"),
            html_url=_str(page, "html_url"),
        )
        for page in payload["pages"]
    ]
    if not pages:
        raise ValueError("gollum event without pages")
    return GollumPayload(pages=pages)


def _decode_commit_comment(payload: dict[str, Any], repo: str) -> CommitCommentPayload:
    comment = _obj(payload, "comment")
    return CommitCommentPayload(
        comment_id=_int(comment, "id"),
        commit_id=_str(comment, "commit_id"),
        body=_text(comment, "body"),
    )


def _decode_create(payload: dict[str, Any], repo: str) -> CreatePayload:
    return CreatePayload(
        ref_type=_str(payload, "ref_type"),
        ref=_opt_str(payload, "ref"),
        master_branch=_text(payload, "master_branch"),
        description=_text(payload, "description"),
    )


def _decode_delete(payload: dict[str, Any], repo: str) -> DeletePayload:
    return DeletePayload(ref_type=_str(payload, "ref_type"), ref=_str(payload, "ref"))


def _decode_fork(payload: dict[str, Any], repo: str) -> ForkPayload:
    return ForkPayload(forkee=_str(_obj(payload, "forkee"), "full_name"))


def _decode_issue_comment(payload: dict[str, Any], repo: str) -> IssueCommentPayload:
    comment = _obj(payload, "comment")
    return IssueCommentPayload(
        action=_str(payload, "action"),
        issue_number=_int(_obj(payload, "issue"), "number"),
        comment_id=_int(comment, "id"),
        body=_text(comment, "body"),
    )


def _decode_issues(payload: dict[str, Any], repo: str) -> IssuesPayload:
    issue = _obj(payload, "issue")
    return IssuesPayload(
        action=_str(payload, "action"),
        number=_int(issue, "number"),
        title=_str(issue, "title"),
        body=_text(issue, "body"),
        labels=[_str(label, "name") for label in issue.get("labels") or []],
    )


def _decode_member(payload: dict[str, Any], repo: str) -> MemberPayload:
    return MemberPayload(
        action=_str(payload, "action"),
        member=_str(_obj(payload, "member"), "login"),
    )


def _decode_public(payload: dict[str, Any], repo: str) -> PublicPayload:
    return PublicPayload()


def _decode_pull_request(payload: dict[str, Any], repo: str) -> PullRequestPayload:
    pull_request = _obj(payload, "pull_request")
    return PullRequestPayload(
        action=_str(payload, "action"),
        number=_int(payload, "number") if "number" in payload else _int(pull_request, "number"),
        title=_str(pull_request, "title"),
        body=_text(pull_request, "body"),
        merged=bool(pull_request.get("merged") or False),
    )


def _decode_pull_request_review(
    payload: dict[str, Any], repo: str
) -> PullRequestReviewPayload:
    review = _obj(payload, "review")
    return PullRequestReviewPayload(
        action=_str(payload, "action"),
        number=_int(_obj(payload, "pull_request"), "number"),
        state=_str(review, "state").lower(),
        body=_text(review, "body"),
        review_id=_int(review, "id"),
    )


def _decode_pull_request_review_comment(
    payload: dict[str, Any], repo: str
) -> PullRequestReviewCommentPayload:
    comment = _obj(payload, "comment")
    return PullRequestReviewCommentPayload(
        action=_str(payload, "action"),
        number=_int(_obj(payload, "pull_request"), "number"),
        body=_text(comment, "body"),
        comment_id=_int(comment, "id"),
    )


def _decode_release(payload: dict[str, Any], repo: str) -> ReleasePayload:
    release = _obj(payload, "release")
    return ReleasePayload(
        action=_str(payload, "action"),
        tag_name=_str(release, "tag_name"),
        target=_str(release, "target_commitish"),
        draft=_bool(release, "draft"),
        prerelease=_bool(release, "prerelease"),
        name=_opt_str(release, "name"),
        body=_opt_str(release, "body"),
    )


def _decode_watch(payload: dict[str, Any], repo: str) -> WatchPayload:
    return WatchPayload(action=_str(payload, "action"))


DECODERS: dict[str, Decoder] = {
    "PushEvent": _decode_push,
    "GollumEvent": _decode_gollum,
    "CommitCommentEvent": _decode_commit_comment,
    "CreateEvent": _decode_create,
    "DeleteEvent": _decode_delete,
    "ForkEvent": _decode_fork,
    "IssueCommentEvent": _decode_issue_comment,
    "IssuesEvent": _decode_issues,
    "MemberEvent": _decode_member,
    "PublicEvent": _decode_public,
    "PullRequestEvent": _decode_pull_request,
    "PullRequestReviewEvent": _decode_pull_request_review,
    "PullRequestReviewCommentEvent": _decode_pull_request_review_comment,
    "ReleaseEvent": _decode_release,
    "WatchEvent": _decode_watch,
}


# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────


def classify(item: RawActivityItem) -> ClassifiedEvent:
    """
    Classify one raw activity item. Never raises.

    The envelope (timestamp, actor, repository) is validated together with the
    payload: an item whose timestamp cannot be parsed is just as undeliverable
    as one with a broken payload.
    """

    def unhandled(reason: UnhandledReason) -> ClassifiedEvent:
        return ClassifiedEvent(
            id=item.id,
            created_at=None,
            actor=item.actor,
            repo=item.repo,
            payload=Unhandled(event_type=item.type, reason=reason),
        )

    decoder = DECODERS.get(item.type)
    if decoder is None:
        return unhandled("unknown_type")

    try:
        if not item.actor or not item.repo:
            raise ValueError("event without actor or repository")
        created_at = parse_timestamp(item.created_at)
        payload = decoder(item.payload, item.repo)
    except DECODE_ERRORS as e:
        logger.warning(f"[classifier] Could not decode {item.type} {item.id}: {e!r}")
        return unhandled("decode_error")

    return ClassifiedEvent(
        id=item.id,
        created_at=created_at,
        actor=item.actor,
        repo=item.repo,
        payload=payload,
    )
