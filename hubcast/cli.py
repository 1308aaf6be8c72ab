"""Command line interface for hubcast.

Feed management goes through the same feed store the daemon uses, so it is
safe to run while `hubcast serve` is polling.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from hubcast import __version__
from hubcast.core import database
from hubcast.core.credentials import load_credentials
from hubcast.core.exceptions import CredentialsError, StoreConflict
from hubcast.domain import feed_ops
from hubcast.models.feed import FeedCreate

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="hubcast",
    help="Relay GitHub activity into Discord channels.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

P = ParamSpec("P")
T = TypeVar("T")


def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


# ─────────────────────────────────────────────────────────────────────────────
# Async bodies
# ─────────────────────────────────────────────────────────────────────────────


def _uses_store(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """Create the schema before the body runs and release connections after.

    Each command runs in its own event loop, so pooled connections must not
    outlive it.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        await database.init_db()
        try:
            return await func(*args, **kwargs)
        finally:
            await database.engine.dispose()

    return wrapper


async def _verify_subject(subject: str) -> bool:
    from hubcast.services.github import (
        GitHubAPIError,
        GitHubEventSource,
        close_github_client,
    )

    source = GitHubEventSource(load_credentials(require_discord=False))
    try:
        return await source.subject_exists(subject)
    except GitHubAPIError as e:
        print_error(f"Could not verify {subject} on GitHub: {e}")
        raise typer.Exit(code=1) from e
    finally:
        await close_github_client()


@_uses_store
async def _add(feed_in: FeedCreate) -> None:
    async with database.async_session_maker() as db:
        feed = await feed_ops.add(db, feed_in)
        await db.commit()
    print_success(f"Following [cyan]{feed.subject}[/cyan] in channel {feed.channel_id}")


@_uses_store
async def _unfollow(subjects: list[str]) -> int:
    failures = 0
    for subject in subjects:
        async with database.async_session_maker() as db:
            try:
                await feed_ops.remove(db, subject)
                await db.commit()
            except StoreConflict as e:
                print_error(e.message)
                failures += 1
                continue
        print_success(f"Unfollowed [cyan]{subject}[/cyan]")
    return failures


@_uses_store
async def _list() -> None:
    async with database.async_session_maker() as db:
        feeds = await feed_ops.list(db)

    if not feeds:
        console.print("[dim]No feeds. Add one with 'hubcast add SUBJECT CHANNEL_ID'.[/dim]")
        return

    table = Table(title="Feeds")
    table.add_column("Subject", style="cyan")
    table.add_column("Channel")
    table.add_column("Cursor")
    table.add_column("Status")

    for feed in feeds:
        if feed.last_error:
            state = f"[red]{feed.last_error}[/red]"
        elif feed.never_polled:
            state = "[dim]Never polled[/dim]"
        else:
            state = "[green]OK[/green]"
        table.add_row(
            feed.subject,
            str(feed.channel_id),
            str(feed.cursor) if feed.cursor is not None else "-",
            state,
        )

    console.print(table)


@_uses_store
async def _poll_once() -> int:
    from hubcast.services.discord import DiscordDeliveryClient
    from hubcast.services.github import GitHubEventSource, close_github_client
    from hubcast.services.poller import FAILED_OUTCOMES, FeedPoller

    credentials = load_credentials()
    delivery = DiscordDeliveryClient(credentials)
    poller = FeedPoller(
        GitHubEventSource(credentials),
        delivery,
        session_maker=database.async_session_maker,
    )
    try:
        report = await poller.poll_all()
    finally:
        await delivery.aclose()
        await close_github_client()

    table = Table(title=f"Poll ({report.duration_seconds}s)")
    table.add_column("Subject", style="cyan")
    table.add_column("Outcome")
    table.add_column("Delivered", justify="right")
    table.add_column("Cursor")
    for cycle in report.feeds:
        style = "red" if cycle.outcome in FAILED_OUTCOMES else "green"
        table.add_row(
            cycle.subject,
            f"[{style}]{cycle.outcome.value}[/{style}]",
            str(cycle.delivered),
            str(cycle.cursor_after) if cycle.cursor_after is not None else "-",
        )
    console.print(table)
    return report.feeds_failed


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


@app.command("add")
def add(
    subject: str = typer.Argument(..., help="GitHub user or owner/repo to watch"),
    channel_id: int = typer.Argument(..., help="Discord channel ID to post into"),
    guild_id: int | None = typer.Option(None, "--guild", "-g", help="Discord server ID"),
    no_verify: bool = typer.Option(
        False,
        "--no-verify",
        help="Skip checking that the subject exists on GitHub",
    ),
) -> None:
    """Start relaying a GitHub user's or repository's activity to a channel.

    Nothing already visible on GitHub is posted: the first poll only records
    where the feed stands.
    """
    try:
        feed_in = FeedCreate(subject=subject, channel_id=channel_id, guild_id=guild_id)
    except ValidationError as e:
        print_error("; ".join(err["msg"] for err in e.errors()))
        raise typer.Exit(code=2) from e

    if not no_verify and not asyncio.run(_verify_subject(feed_in.subject)):
        print_error(f"{feed_in.subject} does not exist on GitHub")
        raise typer.Exit(code=1)

    try:
        asyncio.run(_add(feed_in))
    except StoreConflict as e:
        print_error(e.message)
        raise typer.Exit(code=1) from e


@app.command("unfollow")
def unfollow(
    subjects: list[str] = typer.Argument(..., help="Subjects to stop relaying"),
) -> None:
    """Stop relaying one or more feeds."""
    failures = asyncio.run(_unfollow(subjects))
    if failures:
        raise typer.Exit(code=1)


@app.command("list")
def list_feeds() -> None:
    """List tracked feeds with their cursor and last error."""
    asyncio.run(_list())


@app.command("poll-once")
def poll_once() -> None:
    """Run a single poll cycle over all feeds and exit."""
    from hubcast.core.logging_config import setup_logging

    setup_logging()
    try:
        failed = asyncio.run(_poll_once())
    except CredentialsError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    if failed:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
) -> None:
    """Run the daemon: poll scheduler plus the operator API."""
    import uvicorn

    uvicorn.run("hubcast.main:app", host=host, port=port)


@app.command("version")
def version() -> None:
    """Show version information."""
    console.print(f"[bold cyan]hubcast[/bold cyan] version [green]{__version__}[/green]")


if __name__ == "__main__":
    app()
