from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from hubcast.config import settings


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for the feed store.

    SQLite gets a busy timeout so the daemon and a concurrently running CLI
    command wait for each other's write locks instead of failing.
    """
    connect_args: dict = {}
    if database_url.startswith("sqlite"):
        connect_args["timeout"] = 30

    new_engine = create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

    if database_url.startswith("sqlite"):

        @event.listens_for(new_engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):
            # WAL lets the operator API read while the poller writes
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return new_engine


def create_session_maker(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(  # type: ignore[call-overload]
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = create_engine(settings.database_url)

async_session_maker = create_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields an async database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables.

    The feed store has a single table, so the schema is created in place on
    startup rather than through migrations.
    """
    from hubcast.models import Feed  # noqa: F401  (registers the table)

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
