from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database - feed store. Any SQLAlchemy async URL works; SQLite by default.
    database_url: str = "sqlite+aiosqlite:///hubcast.db"

    # Credentials
    # GitHub token is optional: it only raises the API rate limit.
    # Discord bot token is required for delivery.
    github_token: str = ""
    discord_token: str = ""

    # Remote APIs
    github_api_url: str = "https://api.github.com"
    discord_api_url: str = "https://discord.com/api/v10"

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # Internal API security: shared secret for the manual poll trigger
    # Generate with: python -c "import secrets; print(secrets.token_urlsafe(32))"
    cron_secret: str = ""

    # Scheduler settings
    # Enable/disable the interval poller (set False to run the API only)
    scheduler_enabled: bool = True
    # Seconds between poll ticks
    poll_interval_seconds: int = 60
    # Feeds polled concurrently within one tick
    poll_concurrency: int = 4
    # Upper bound for one feed's whole cycle (fetch + all dispatches)
    feed_timeout_seconds: float = 300.0

    # Event source (GitHub)
    fetch_timeout_seconds: float = 30.0
    # Pages followed per fetch; GitHub serves at most 300 events per feed anyway
    max_pages: int = 10
    # Backoff after SourceUnavailable: base * 2**(failures - 1), capped
    source_backoff_base_seconds: int = 60
    source_backoff_max_seconds: int = 3600

    # Delivery (Discord)
    send_timeout_seconds: float = 10.0
    delivery_max_attempts: int = 3
    delivery_base_delay_seconds: float = 1.0

    # Rendering
    commit_message_max_length: int = 72

    @property
    def github_authenticated(self) -> bool:
        """Check if a GitHub token is configured."""
        return bool(self.github_token)


settings = Settings()
