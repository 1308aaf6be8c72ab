"""
GitHub API helper utilities.

Provides rate limit handling, pagination and poll-interval header parsing, and
the translation of error responses into the transient/permanent taxonomy the
poller acts on.
"""

import logging
import re

import httpx

from hubcast.services.github.exceptions import (
    GitHubRepoRenamed,
    SourceRejected,
    SourceUnavailable,
)

logger = logging.getLogger(__name__)

# GitHub's documented default when X-Poll-Interval is absent
DEFAULT_POLL_INTERVAL = 60

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def parse_redirect_location(location: str) -> tuple[str, str] | None:
    """
    Extract owner/repo from GitHub redirect Location header.

    When a repository is renamed or transferred, GitHub returns a 301 with a
    Location header pointing to the new URL.

    Args:
        location: The Location header value, which can be:
            - Absolute: "https://api.github.com/repos/owner/newname/..."
            - Relative: "/repos/owner/newname/..."

    Returns:
        Tuple of (owner, repo) if parseable, None otherwise
    """
    if not location:
        return None

    # Try absolute URL format: https://api.github.com/repos/{owner}/{repo}/...
    match = re.match(r"https://api\.github\.com/repos/([^/]+)/([^/]+)", location)
    if match:
        return (match.group(1), match.group(2))

    # Try relative URL format: /repos/{owner}/{repo}/...
    match = re.match(r"/repos/([^/]+)/([^/]+)", location)
    if match:
        return (match.group(1), match.group(2))

    return None


def parse_redirect_repo_id(location: str) -> int | None:
    """
    Extract repository ID from GitHub redirect Location header.

    GitHub sometimes redirects to a repository ID-based URL instead of owner/repo:
    https://api.github.com/repositories/1133274306/events
    """
    if not location:
        return None

    match = re.match(r"https://api\.github\.com/repositories/(\d+)", location)
    if match:
        return int(match.group(1))

    match = re.match(r"/repositories/(\d+)", location)
    if match:
        return int(match.group(1))

    return None


def parse_next_link(link_header: str) -> str | None:
    """Return the rel="next" URL from a Link header, if any."""
    if not link_header:
        return None
    match = _NEXT_LINK_RE.search(link_header)
    return match.group(1) if match else None


def parse_poll_interval(response: httpx.Response) -> int:
    """Seconds GitHub asks clients to wait before polling the same feed again."""
    raw = response.headers.get("X-Poll-Interval")
    try:
        return int(raw) if raw else DEFAULT_POLL_INTERVAL
    except ValueError:
        return DEFAULT_POLL_INTERVAL


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


def handle_error_response(response: httpx.Response, subject: str) -> None:
    """
    Translate a non-success GitHub API response into the error taxonomy.

    200 and 304 pass through. Everything the poller should retry later raises
    SourceUnavailable; everything retrying cannot fix raises SourceRejected.

    Args:
        response: The HTTP response from GitHub API
        subject: Feed subject for error context ("user" or "owner/repo")

    Raises:
        SourceUnavailable: 5xx, 429, or 403 with the rate limit exhausted
        GitHubRepoRenamed: If the repository was renamed/transferred (301)
        SourceRejected: 401, 403, 404 and any other client error
    """
    status = response.status_code
    if status in (200, 304):
        return

    rate_info = RateLimitInfo(response)

    if status == 301:
        location = response.headers.get("Location", "")
        logger.debug(f"Got 301 redirect for {subject}, Location header: {location!r}")

        new_repo = parse_redirect_location(location)
        if new_repo:
            new_full_name = f"{new_repo[0]}/{new_repo[1]}"
            logger.info(f"Repository redirect detected: {subject} → {new_full_name}")
            raise GitHubRepoRenamed(subject, new_full_name)

        repo_id = parse_redirect_repo_id(location)
        if repo_id:
            logger.info(f"Repository redirect to ID detected: {subject} → ID {repo_id}")
            raise GitHubRepoRenamed(subject, new_full_name=None, repo_id=repo_id)

        raise GitHubRepoRenamed(subject)

    if status == 401:
        raise SourceRejected("Invalid or expired GitHub token", 401)
    if status == 404:
        raise SourceRejected(f"Subject not found on GitHub: {subject}", 404)
    if status == 403 or status == 429:
        if status == 429 or rate_info.is_exhausted:
            raise SourceUnavailable(
                "GitHub API rate limit exceeded",
                status,
                rate_limit_reset=rate_info.reset_timestamp,
                retry_after=_retry_after(response),
            )
        raise SourceRejected("GitHub API forbidden", 403)
    if status >= 500:
        raise SourceUnavailable(f"GitHub API error: {status}", status)

    raise SourceRejected(f"GitHub API error: {status}", status)
