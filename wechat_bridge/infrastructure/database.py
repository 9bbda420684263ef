"""
Database setup and session management.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wechat_bridge.config.settings import Settings
from wechat_bridge.domain.message import Base
from wechat_bridge.domain.event import EventRecord  # noqa: F401 - needed for table creation


def is_memory_database(database_url: str) -> bool:
    """True for SQLite URLs that point at an in-memory database."""
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured database.

    File-backed SQLite keeps the default pool so every session gets its own
    connection. Only in-memory SQLite shares a single connection.
    """
    url = make_url(settings.database_url)
    connect_args = {}
    engine_kwargs = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if is_memory_database(settings.database_url):
            # An in-memory database lives only as long as its one connection
            engine_kwargs["poolclass"] = StaticPool

    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        connect_args=connect_args,
        **engine_kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the given engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_database(engine: AsyncEngine) -> None:
    """Initialize database and create tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
