"""
Shared HTTP client for GitHub API operations.

Provides a singleton AsyncClient with connection pooling for all GitHub API calls.
Every tracked feed is polled through the same client, so connections are reused
across feeds and ticks.
"""

import logging

import httpx

from hubcast.config import settings

logger = logging.getLogger(__name__)

# Module-level singleton client
_client: httpx.AsyncClient | None = None


def get_github_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for GitHub API calls.

    Auth headers are passed per-request, not stored on the client.
    The timeout bounds every fetch so a stalled GitHub never blocks a poll tick.

    Returns:
        Shared httpx.AsyncClient configured for GitHub API
    """
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.fetch_timeout_seconds, connect=5.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            http2=True,  # Enable HTTP/2 for GitHub API
            follow_redirects=False,  # 301 means the repository moved
        )
        logger.debug("Created new GitHub HTTP client with connection pooling")
    return _client


async def close_github_client() -> None:
    """
    Close the shared HTTP client.

    Call on shutdown for graceful termination.
    """
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        _client = None
        logger.debug("Closed GitHub HTTP client")
