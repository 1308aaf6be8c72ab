"""
GitHub event source package.

Usage: `from hubcast.services.github import GitHubEventSource, SourceUnavailable`

Module structure:
- events.py: GitHubEventSource, the activity feed reader
- helpers.py: Rate limit, pagination and error translation utilities
- types.py: RawActivityItem and FetchResult
- exceptions.py: SourceUnavailable / SourceRejected taxonomy
- cache.py: TTL cache for subject existence checks
- http_client.py: Shared httpx client
"""

from hubcast.services.github.cache import clear_all_caches as clear_github_caches
from hubcast.services.github.cache import get_cache_stats as get_github_cache_stats
from hubcast.services.github.events import GitHubEventSource
from hubcast.services.github.exceptions import (
    GitHubAPIError,
    GitHubRepoRenamed,
    SourceRejected,
    SourceUnavailable,
)
from hubcast.services.github.helpers import RateLimitInfo, handle_error_response
from hubcast.services.github.http_client import close_github_client
from hubcast.services.github.types import FetchResult, RawActivityItem

__all__ = [
    # Adapter (main entry point)
    "GitHubEventSource",
    # HTTP client lifecycle
    "close_github_client",
    # Cache management
    "clear_github_caches",
    "get_github_cache_stats",
    # Utilities
    "handle_error_response",
    "RateLimitInfo",
    # Exceptions
    "GitHubAPIError",
    "GitHubRepoRenamed",
    "SourceRejected",
    "SourceUnavailable",
    # Types
    "FetchResult",
    "RawActivityItem",
]
