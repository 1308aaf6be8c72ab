"""
GitHub activity feed reader.

Fetches the public events of a repository (/repos/{owner}/{repo}/events) or a
user (/users/{user}/events), newest first, as a lazy sequence of
RawActivityItem. Uses conditional requests (ETag / If-None-Match) so polls of
an unchanged feed cost nothing against the rate limit, and follows the Link
header for further pages instead of assuming a page size.
"""

import json
import logging
from collections.abc import AsyncIterator, Iterator
from typing import Any

import httpx

from hubcast.config import settings
from hubcast.core.credentials import AppCredentials
from hubcast.models.feed import is_repository_subject
from hubcast.services.github.cache import cached_github_call, subject_cache
from hubcast.services.github.exceptions import SourceUnavailable
from hubcast.services.github.helpers import (
    handle_error_response,
    parse_next_link,
    parse_poll_interval,
)
from hubcast.services.github.http_client import get_github_client
from hubcast.services.github.types import FetchResult, RawActivityItem

logger = logging.getLogger(__name__)

USER_AGENT = "hubcast"


async def _no_items() -> AsyncIterator[RawActivityItem]:
    return
    yield  # pragma: no cover


class GitHubEventSource:
    """
    Event source adapter for GitHub.

    Holds no per-feed state: the cursor and ETag are passed in by the poller
    and the new ETag is handed back in the FetchResult.
    """

    API_VERSION = "2022-11-28"
    PER_PAGE = 100

    def __init__(
        self,
        credentials: AppCredentials,
        base_url: str | None = None,
        max_pages: int | None = None,
    ):
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.max_pages = max_pages or settings.max_pages
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
            "User-Agent": USER_AGENT,
        }
        # Unauthenticated access works, just with a lower rate limit
        if credentials.github_token:
            self._headers["Authorization"] = f"Bearer {credentials.github_token}"

    def events_url(self, subject: str) -> str:
        if is_repository_subject(subject):
            return f"{self.base_url}/repos/{subject}/events"
        return f"{self.base_url}/users/{subject}/events"

    def subject_url(self, subject: str) -> str:
        if is_repository_subject(subject):
            return f"{self.base_url}/repos/{subject}"
        return f"{self.base_url}/users/{subject}"

    async def _get(
        self,
        url: str,
        subject: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET with network failures mapped to SourceUnavailable."""
        client = get_github_client()
        try:
            response = await client.get(url, headers=headers or self._headers, params=params)
        except httpx.TimeoutException as e:
            raise SourceUnavailable(f"Timed out fetching {subject} from GitHub") from e
        except httpx.RequestError as e:
            raise SourceUnavailable(f"Request to GitHub failed for {subject}: {e}") from e

        handle_error_response(response, subject)
        return response

    async def fetch(
        self,
        subject: str,
        cursor: int | None,
        etag: str | None = None,
    ) -> FetchResult:
        """
        Poll the activity feed of a subject.

        The first page is requested eagerly so that errors, the ETag and the
        poll interval are known before any item is consumed. Further pages are
        requested only while iterating, and paging stops at the first page that
        reaches back to `cursor`. With no cursor (first observation) only the
        first page is read: the newest item is all the poller needs.

        Args:
            subject: "user" or "owner/repo"
            cursor: Id of the newest already-processed event, or None
            etag: ETag from the previous successful poll

        Returns:
            FetchResult whose items are newest-first, as GitHub returns them

        Raises:
            SourceUnavailable: Network error, timeout, 5xx, rate limit
            SourceRejected: Bad credentials, subject missing or moved
        """
        headers = dict(self._headers)
        if etag:
            headers["If-None-Match"] = etag

        response = await self._get(
            self.events_url(subject),
            subject,
            headers=headers,
            params={"per_page": self.PER_PAGE},
        )
        poll_interval = parse_poll_interval(response)

        if response.status_code == 304:
            logger.debug(f"[github] {subject}: not modified")
            return FetchResult(
                items=_no_items(),
                etag=etag,
                poll_interval=poll_interval,
                not_modified=True,
            )

        return FetchResult(
            items=self._iterate(subject, cursor, response),
            etag=response.headers.get("ETag"),
            poll_interval=poll_interval,
        )

    async def _iterate(
        self,
        subject: str,
        cursor: int | None,
        first: httpx.Response,
    ) -> AsyncIterator[RawActivityItem]:
        response = first
        pages = 1
        while True:
            reached_cursor = cursor is None
            for item in self._parse_page(response, subject):
                if cursor is not None and item.id <= cursor:
                    reached_cursor = True
                yield item

            next_url = parse_next_link(response.headers.get("Link", ""))
            if reached_cursor or next_url is None:
                return
            if pages >= self.max_pages:
                logger.warning(
                    f"[github] {subject}: stopped after {pages} pages without reaching "
                    f"cursor {cursor}; older events are skipped"
                )
                return

            response = await self._get(next_url, subject)
            pages += 1

    def _parse_page(self, response: httpx.Response, subject: str) -> Iterator[RawActivityItem]:
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SourceUnavailable(f"Malformed events response for {subject}") from e

        if not isinstance(data, list):
            raise SourceUnavailable(f"Unexpected events response shape for {subject}")

        for element in data:
            if not isinstance(element, dict):
                logger.warning(f"[github] {subject}: skipping non-object event {element!r}")
                continue
            try:
                yield RawActivityItem.from_api(element)
            except ValueError as e:
                logger.warning(f"[github] {subject}: skipping event: {e}")

    @cached_github_call(subject_cache)
    async def subject_exists(self, subject: str) -> bool:
        """
        Check whether a user or repository exists on GitHub.

        Returns:
            True if found, False on 404

        Raises:
            SourceUnavailable / SourceRejected for any other failure
        """
        client = get_github_client()
        try:
            response = await client.get(self.subject_url(subject), headers=self._headers)
        except httpx.RequestError as e:
            raise SourceUnavailable(f"Request to GitHub failed for {subject}: {e}") from e

        if response.status_code == 404:
            return False
        handle_error_response(response, subject)
        return True
