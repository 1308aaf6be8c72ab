"""Root conftest: test infrastructure for all hubcast tests.

Provides:
- Environment defaults so importing hubcast never needs a real .env
- A throwaway SQLite feed store per test (engine, session maker, session)
- Autouse reset of the GitHub subject cache and shared HTTP client
"""

from __future__ import annotations

import os

# Must be set before hubcast.config is imported anywhere
os.environ.setdefault("DISCORD_TOKEN", "test-discord-token")
os.environ.setdefault("GITHUB_TOKEN", "")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402

from hubcast.core.database import create_engine, create_session_maker, init_db  # noqa: E402

# ─────────────────────────────────────────────────────────────────────────────
# Feed store
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
async def store_engine(tmp_path):
    """Async engine over a fresh SQLite file with the schema created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'feeds.db'}")
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_maker(store_engine):
    return create_session_maker(store_engine)


@pytest.fixture
async def db_session(session_maker):
    """A session on the temporary store. Tests commit explicitly."""
    async with session_maker() as session:
        yield session


# ─────────────────────────────────────────────────────────────────────────────
# Shared state between tests
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear the subject cache and drop the shared GitHub client."""
    import hubcast.services.github.http_client as http_client_mod
    from hubcast.services.github import clear_github_caches

    clear_github_caches()
    http_client_mod._client = None
    yield
    clear_github_caches()
    http_client_mod._client = None
