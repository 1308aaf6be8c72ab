"""Unit tests for the event classifier."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from hubcast.services.events.classifier import DECODERS, classify, parse_timestamp
from hubcast.services.events.types import (
    CreatePayload,
    ForkPayload,
    GollumPayload,
    IssuesPayload,
    PullRequestPayload,
    PullRequestReviewPayload,
    PushPayload,
    ReleasePayload,
    Unhandled,
)
from hubcast.services.github.types import RawActivityItem

from tests.helpers.payloads import (
    ACTOR,
    REPO,
    SUPPORTED_EVENTS,
    create_payload,
    fork_payload,
    gollum_payload,
    issues_payload,
    make_item,
    make_raw_event,
    pull_request_payload,
    pull_request_review_payload,
    push_payload,
    release_payload,
)

# ═══════════════════════════════════════════════════════════════════════════
# RawActivityItem envelope
# ═══════════════════════════════════════════════════════════════════════════


class TestRawActivityItem:
    """Tests for reading the events-API envelope."""

    def test_from_api(self):
        item = make_item("WatchEvent", {"action": "started"}, event_id=42)

        assert item.id == 42
        assert item.type == "WatchEvent"
        assert item.actor == ACTOR
        assert item.repo == REPO
        assert item.payload == {"action": "started"}

    def test_prefers_display_login(self):
        raw = make_raw_event("WatchEvent")
        raw["actor"] = {"login": "bot[bot]", "display_login": "bot"}
        assert RawActivityItem.from_api(raw).actor == "bot"

    def test_missing_id_raises(self):
        raw = make_raw_event("WatchEvent")
        del raw["id"]
        with pytest.raises(ValueError, match="numeric id"):
            RawActivityItem.from_api(raw)

    def test_non_numeric_id_raises(self):
        raw = make_raw_event("WatchEvent")
        raw["id"] = "abc"
        with pytest.raises(ValueError):
            RawActivityItem.from_api(raw)

    def test_out_of_range_id_raises(self):
        raw = make_raw_event("WatchEvent")
        raw["id"] = float("inf")
        with pytest.raises(ValueError, match="numeric id"):
            RawActivityItem.from_api(raw)

    def test_non_object_payload_becomes_empty(self):
        raw = make_raw_event("WatchEvent")
        raw["payload"] = "oops"
        assert RawActivityItem.from_api(raw).payload == {}


# ═══════════════════════════════════════════════════════════════════════════
# Supported types
# ═══════════════════════════════════════════════════════════════════════════


class TestClassifySupported:
    """Every supported type decodes to its own payload."""

    def test_every_supported_type_has_a_decoder(self):
        assert set(SUPPORTED_EVENTS) == set(DECODERS)

    @pytest.mark.parametrize("event_type", sorted(SUPPORTED_EVENTS))
    def test_decodes(self, event_type):
        event = classify(make_item(event_type, SUPPORTED_EVENTS[event_type]))

        assert not event.is_unhandled
        assert event.created_at == datetime(2016, 11, 10, 8, 42, 18, tzinfo=UTC)
        assert event.actor == ACTOR
        assert event.repo == REPO

    def test_push(self):
        event = classify(make_item("PushEvent", push_payload()))
        payload = event.payload

        assert isinstance(payload, PushPayload)
        assert payload.branch == "doc"
        assert payload.distinct_size == 1
        assert len(payload.commits) == 1
        commit = payload.commits[0]
        assert commit.author_name == "nabijaczleweli"
        assert commit.url == f"https://github.com/{REPO}/commit/{commit.sha}"

    def test_push_without_commit_list(self):
        payload = push_payload()
        del payload["commits"]
        del payload["size"]
        del payload["distinct_size"]

        event = classify(make_item("PushEvent", payload))

        assert isinstance(event.payload, PushPayload)
        assert event.payload.commits == []
        assert event.payload.size == 0
        assert event.payload.distinct_size == 0

    def test_push_tag_ref(self):
        event = classify(make_item("PushEvent", push_payload(ref="refs/tags/v1")))
        assert event.payload.branch == "v1"

    def test_gollum_pages(self):
        event = classify(make_item("GollumEvent", gollum_payload()))

        assert isinstance(event.payload, GollumPayload)
        assert [page.action for page in event.payload.pages] == ["edited", "edited"]

    def test_create_repository_has_no_ref(self):
        event = classify(make_item("CreateEvent", create_payload("repository", None)))

        assert isinstance(event.payload, CreatePayload)
        assert event.payload.ref is None

    def test_fork(self):
        event = classify(make_item("ForkEvent", fork_payload()))
        assert event.payload == ForkPayload(forkee="nabijaczleweli/clap-rs")

    def test_issue_labels(self):
        event = classify(make_item("IssuesEvent", issues_payload()))

        assert isinstance(event.payload, IssuesPayload)
        assert event.payload.labels == ["bug"]

    def test_pull_request_number_from_pull_request(self):
        payload = pull_request_payload()
        del payload["number"]

        event = classify(make_item("PullRequestEvent", payload))

        assert isinstance(event.payload, PullRequestPayload)
        assert event.payload.number == 138
        assert event.payload.merged is True

    def test_review_state_lowercased(self):
        event = classify(make_item("PullRequestReviewEvent", pull_request_review_payload()))

        assert isinstance(event.payload, PullRequestReviewPayload)
        assert event.payload.state == "approved"

    def test_release(self):
        event = classify(make_item("ReleaseEvent", release_payload()))

        assert isinstance(event.payload, ReleasePayload)
        assert event.payload.target == "master"
        assert event.payload.draft is False

    def test_deterministic(self):
        item = make_item("PushEvent", push_payload())
        assert classify(item) == classify(item)


# ═══════════════════════════════════════════════════════════════════════════
# Unhandled
# ═══════════════════════════════════════════════════════════════════════════


class TestClassifyUnhandled:
    """Unknown and malformed items classify to Unhandled instead of raising."""

    def test_unknown_type(self):
        event = classify(make_item("ForkApplyEvent", {}))

        assert event.is_unhandled
        assert event.payload == Unhandled(event_type="ForkApplyEvent", reason="unknown_type")
        assert event.created_at is None

    def test_missing_key(self):
        event = classify(make_item("WatchEvent", {}))
        assert event.payload == Unhandled(event_type="WatchEvent", reason="decode_error")

    def test_wrong_type(self):
        payload = issues_payload()
        payload["issue"]["number"] = "11"

        event = classify(make_item("IssuesEvent", payload))

        assert event.is_unhandled
        assert event.payload.reason == "decode_error"

    def test_bool_is_not_an_int(self):
        payload = issues_payload()
        payload["issue"]["number"] = True
        assert classify(make_item("IssuesEvent", payload)).is_unhandled

    def test_non_object_nested_field(self):
        payload = fork_payload()
        payload["forkee"] = "nabijaczleweli/clap-rs"
        assert classify(make_item("ForkEvent", payload)).is_unhandled

    def test_commit_entry_not_an_object(self):
        assert classify(make_item("PushEvent", push_payload(commits=["abc"]))).is_unhandled

    def test_gollum_without_pages(self):
        assert classify(make_item("GollumEvent", {"pages": []})).is_unhandled

    def test_bad_timestamp(self):
        item = make_item("WatchEvent", {"action": "started"}, created_at="yesterday")
        event = classify(item)

        assert event.is_unhandled
        assert event.payload.reason == "decode_error"

    def test_out_of_range_timestamp(self):
        # Valid ISO text whose UTC conversion falls before year 1
        item = make_item(
            "WatchEvent", {"action": "started"}, created_at="0001-01-01T00:00:00+01:00"
        )
        event = classify(item)

        assert event.is_unhandled
        assert event.payload.reason == "decode_error"

    def test_missing_repository(self):
        raw = make_raw_event("WatchEvent", {"action": "started"})
        raw["repo"] = None

        event = classify(RawActivityItem.from_api(raw))

        assert event.payload.reason == "decode_error"

    def test_keeps_id_actor_and_repo(self):
        event = classify(make_item("SponsorshipEvent", {}, event_id=77))

        assert event.id == 77
        assert event.actor == ACTOR
        assert event.repo == REPO


class TestParseTimestamp:
    """Tests for GitHub timestamp parsing."""

    def test_zulu(self):
        assert parse_timestamp("2016-11-10T08:42:18Z") == datetime(
            2016, 11, 10, 8, 42, 18, tzinfo=UTC
        )

    def test_offset_normalized_to_utc(self):
        parsed = parse_timestamp("2016-11-10T10:42:18+02:00")
        assert parsed == datetime(2016, 11, 10, 8, 42, 18, tzinfo=UTC)
        assert parsed.tzinfo == UTC

    def test_naive_assumed_utc(self):
        assert parse_timestamp("2016-11-10T08:42:18").tzinfo == UTC
