"""Exceptions for the GitHub event source."""


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


class SourceUnavailable(GitHubAPIError):
    """Transient failure: network error, timeout, 5xx or rate limit.

    The feed is backed off and retried on a later tick; its cursor is untouched.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after  # Seconds the server asked us to wait
        super().__init__(message, status_code, rate_limit_reset)


class SourceRejected(GitHubAPIError):
    """Permanent failure: bad credentials, missing or moved subject.

    Not retried with backoff; surfaced to the operator through logs and the
    feed's last_error.
    """


class GitHubRepoRenamed(SourceRejected):
    """Repository has been renamed or transferred on GitHub.

    When GitHub returns a 301 redirect, this exception carries the old and new
    repository names so the operator can re-add the feed under its new name.

    In some cases, GitHub redirects to a repository ID-based URL instead of
    providing the new owner/repo directly. When this happens, new_full_name
    will be None and repo_id will contain the GitHub repository ID.
    """

    def __init__(
        self,
        old_full_name: str,
        new_full_name: str | None = None,
        repo_id: int | None = None,
    ):
        self.old_full_name = old_full_name
        self.new_full_name = new_full_name
        self.repo_id = repo_id

        if new_full_name:
            message = f"Repository renamed: {old_full_name} → {new_full_name}"
        elif repo_id:
            message = f"Repository {old_full_name} moved (GitHub ID: {repo_id})"
        else:
            message = f"Repository {old_full_name} was moved"

        super().__init__(message, status_code=301)
