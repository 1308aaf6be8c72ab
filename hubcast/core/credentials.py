"""Process-wide API credentials.

Loaded once at startup and passed explicitly into the GitHub event source and
the Discord delivery client. Nothing in the pipeline reads tokens from
settings directly.
"""

import logging
from dataclasses import dataclass

from hubcast.config import Settings, settings
from hubcast.core.exceptions import CredentialsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppCredentials:
    """Tokens for the two remote APIs."""

    github_token: str
    discord_token: str

    def __repr__(self) -> str:
        # Never leak tokens into logs or tracebacks
        return (
            f"AppCredentials(github_token={'***' if self.github_token else ''!r}, "
            f"discord_token={'***' if self.discord_token else ''!r})"
        )


def load_credentials(
    config: Settings | None = None,
    require_discord: bool = True,
) -> AppCredentials:
    """
    Build AppCredentials from settings.

    Args:
        config: Settings to read from (defaults to the module singleton)
        require_discord: Fail when the Discord token is missing. Feed management
            commands only talk to GitHub and pass False.

    Raises:
        CredentialsError: If the Discord token is required but not configured
    """
    config = config or settings

    github_token = config.github_token.strip()
    discord_token = config.discord_token.strip()

    if require_discord and not discord_token:
        raise CredentialsError("DISCORD_TOKEN is not configured")

    if not github_token:
        logger.warning("GITHUB_TOKEN not configured, using unauthenticated GitHub rate limit")

    return AppCredentials(github_token=github_token, discord_token=discord_token)
