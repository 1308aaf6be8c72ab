"""Unit tests for GitHub HTTP client and helpers.

Tests the shared HTTP client singleton, rate limit and header parsing,
redirect handling, and the SourceUnavailable / SourceRejected translation.
"""

from __future__ import annotations

import httpx
import pytest

from hubcast.services.github.cache import clear_all_caches, get_cache_stats, subject_cache
from hubcast.services.github.exceptions import (
    GitHubRepoRenamed,
    SourceRejected,
    SourceUnavailable,
)
from hubcast.services.github.helpers import (
    DEFAULT_POLL_INTERVAL,
    RateLimitInfo,
    handle_error_response,
    parse_next_link,
    parse_poll_interval,
    parse_redirect_location,
    parse_redirect_repo_id,
)
from hubcast.services.github.http_client import close_github_client, get_github_client

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_response(
    status_code: int = 200,
    json_data: object = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build a fake httpx.Response."""
    return httpx.Response(
        status_code=status_code,
        json=json_data,
        headers=headers or {},
    )


# ═══════════════════════════════════════════════════════════════════════════
# RateLimitInfo
# ═══════════════════════════════════════════════════════════════════════════


class TestRateLimitInfo:
    """Tests for rate limit header parsing."""

    def test_extracts_remaining_and_reset(self):
        resp = _make_response(
            headers={"X-RateLimit-Remaining": "42", "X-RateLimit-Reset": "1700000000"}
        )
        info = RateLimitInfo(resp)

        assert info.remaining == "42"
        assert info.reset_timestamp == 1700000000
        assert info.is_exhausted is False

    def test_exhausted_when_remaining_zero(self):
        resp = _make_response(headers={"X-RateLimit-Remaining": "0"})
        assert RateLimitInfo(resp).is_exhausted is True

    def test_missing_headers(self):
        info = RateLimitInfo(_make_response())
        assert info.reset_timestamp is None
        assert info.is_exhausted is False


# ═══════════════════════════════════════════════════════════════════════════
# Header parsing
# ═══════════════════════════════════════════════════════════════════════════


class TestParseNextLink:
    """Tests for Link header pagination."""

    def test_extracts_next(self):
        header = (
            '<https://api.github.com/repositories/1/events?page=2>; rel="next", '
            '<https://api.github.com/repositories/1/events?page=3>; rel="last"'
        )
        assert parse_next_link(header) == "https://api.github.com/repositories/1/events?page=2"

    def test_no_next_on_last_page(self):
        header = (
            '<https://api.github.com/repositories/1/events?page=1>; rel="first", '
            '<https://api.github.com/repositories/1/events?page=2>; rel="prev"'
        )
        assert parse_next_link(header) is None

    def test_empty_header(self):
        assert parse_next_link("") is None


class TestParsePollInterval:
    """Tests for the X-Poll-Interval header."""

    def test_reads_header(self):
        resp = _make_response(headers={"X-Poll-Interval": "120"})
        assert parse_poll_interval(resp) == 120

    def test_defaults_when_missing(self):
        assert parse_poll_interval(_make_response()) == DEFAULT_POLL_INTERVAL

    def test_defaults_when_garbage(self):
        resp = _make_response(headers={"X-Poll-Interval": "soon"})
        assert parse_poll_interval(resp) == DEFAULT_POLL_INTERVAL


class TestParseRedirect:
    """Tests for 301 Location parsing."""

    def test_absolute_repos_url(self):
        location = "https://api.github.com/repos/new-owner/new-repo/events"
        assert parse_redirect_location(location) == ("new-owner", "new-repo")

    def test_relative_repos_url(self):
        assert parse_redirect_location("/repos/a/b") == ("a", "b")

    def test_unknown_url(self):
        assert parse_redirect_location("https://example.com/x") is None

    def test_repositories_id_url(self):
        location = "https://api.github.com/repositories/1133274306/events"
        assert parse_redirect_repo_id(location) == 1133274306

    def test_non_numeric_id(self):
        assert parse_redirect_repo_id("/repositories/abc") is None


# ═══════════════════════════════════════════════════════════════════════════
# handle_error_response
# ═══════════════════════════════════════════════════════════════════════════


class TestHandleErrorResponse:
    """Tests for translating GitHub responses into the error taxonomy."""

    @pytest.mark.parametrize("status_code", [200, 304])
    def test_success_and_not_modified_pass(self, status_code):
        handle_error_response(_make_response(status_code=status_code), "owner/repo")

    def test_401_is_rejected(self):
        with pytest.raises(SourceRejected, match="Invalid or expired") as exc_info:
            handle_error_response(_make_response(status_code=401), "owner/repo")
        assert exc_info.value.status_code == 401

    def test_404_is_rejected(self):
        with pytest.raises(SourceRejected, match="not found"):
            handle_error_response(_make_response(status_code=404), "owner/repo")

    def test_403_without_rate_limit_is_rejected(self):
        resp = _make_response(status_code=403, headers={"X-RateLimit-Remaining": "50"})
        with pytest.raises(SourceRejected, match="forbidden"):
            handle_error_response(resp, "owner/repo")

    def test_403_with_rate_limit_exhausted_is_unavailable(self):
        resp = _make_response(
            status_code=403,
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )
        with pytest.raises(SourceUnavailable, match="rate limit") as exc_info:
            handle_error_response(resp, "owner/repo")
        assert exc_info.value.rate_limit_reset == 1700000000

    def test_429_is_unavailable_with_retry_after(self):
        resp = _make_response(status_code=429, headers={"Retry-After": "30"})
        with pytest.raises(SourceUnavailable) as exc_info:
            handle_error_response(resp, "owner/repo")
        assert exc_info.value.retry_after == 30.0

    @pytest.mark.parametrize("status_code", [500, 502, 503])
    def test_5xx_is_unavailable(self, status_code):
        with pytest.raises(SourceUnavailable, match=str(status_code)):
            handle_error_response(_make_response(status_code=status_code), "owner/repo")

    def test_other_4xx_is_rejected(self):
        with pytest.raises(SourceRejected, match="422"):
            handle_error_response(_make_response(status_code=422), "owner/repo")

    def test_301_with_owner_repo_redirect(self):
        resp = _make_response(
            status_code=301,
            headers={"Location": "https://api.github.com/repos/new-owner/new-repo/events"},
        )
        with pytest.raises(GitHubRepoRenamed) as exc_info:
            handle_error_response(resp, "old-owner/old-repo")

        assert exc_info.value.new_full_name == "new-owner/new-repo"
        assert isinstance(exc_info.value, SourceRejected)

    def test_301_with_repo_id_redirect(self):
        resp = _make_response(
            status_code=301,
            headers={"Location": "https://api.github.com/repositories/12345/events"},
        )
        with pytest.raises(GitHubRepoRenamed) as exc_info:
            handle_error_response(resp, "old/repo")

        assert exc_info.value.repo_id == 12345
        assert exc_info.value.new_full_name is None

    def test_301_unparseable(self):
        resp = _make_response(status_code=301, headers={"Location": "https://example.com/x"})
        with pytest.raises(GitHubRepoRenamed, match="was moved"):
            handle_error_response(resp, "owner/repo")


# ═══════════════════════════════════════════════════════════════════════════
# HTTP Client Singleton
# ═══════════════════════════════════════════════════════════════════════════


class TestGitHubHttpClient:
    """Tests for the shared HTTP client singleton."""

    def test_client_returns_async_client(self):
        client = get_github_client()
        assert isinstance(client, httpx.AsyncClient)
        assert client.timeout.connect == 5.0
        assert client.follow_redirects is False

    def test_returns_same_instance(self):
        assert get_github_client() is get_github_client()

    @pytest.mark.asyncio
    async def test_close_resets_singleton(self):
        import hubcast.services.github.http_client as mod

        client = get_github_client()
        await close_github_client()

        assert client.is_closed
        assert mod._client is None


# ═══════════════════════════════════════════════════════════════════════════
# Cache utilities
# ═══════════════════════════════════════════════════════════════════════════


class TestCacheUtilities:
    """Tests for cache management functions."""

    def test_clear_all_caches(self):
        subject_cache["test_key"] = True
        assert len(subject_cache) == 1

        clear_all_caches()
        assert len(subject_cache) == 0

    def test_get_cache_stats_returns_sizes(self):
        stats = get_cache_stats()

        assert stats["subjects"]["size"] == 0
        assert stats["subjects"]["maxsize"] == 200
