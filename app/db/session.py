import os
from collections.abc import AsyncGenerator
from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from app.core.config import get_settings
from app.db.base import Base

# Import ORM models so that Base.metadata is aware of them
from app.models import automation_log, course_template, meeting_record, scheduled_occurrence  # noqa: F401

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ

# ---------------------------------------------------------------------------
# Main application engine + session
# ---------------------------------------------------------------------------
engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    # TestClient runs the app on its own event loop; NullPool avoids
    # connection reuse across loops.
    poolclass=NullPool if IS_TEST or settings.DB_NULL_POOL else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


def build_session_factory(db_url: str) -> async_sessionmaker[AsyncSession]:
    """
    Build an independent engine + session factory for the given URL.

    Used by tests and one-off scripts that must not share the application
    engine.
    """
    other_engine = create_async_engine(db_url, echo=False, poolclass=NullPool)
    return async_sessionmaker(
        bind=other_engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db_for_startup() -> None:
    """
    Create missing tables on application startup.

    Existing tables and rows are left alone.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# TESTS ONLY: reset schema using a SYNC engine
# ---------------------------------------------------------------------------

def build_sync_db_url(async_url: str) -> str:
    """
    Convert an async driver URL into its synchronous counterpart:
    'postgresql+asyncpg://...' -> 'postgresql://...',
    'sqlite+aiosqlite://...'   -> 'sqlite://...'.
    """
    for async_driver in ("+asyncpg", "+aiosqlite"):
        if async_driver in async_url:
            return async_url.replace(async_driver, "")
    return async_url


def reset_schema_sync(db_url: str | None = None) -> None:
    """
    Run drop_all + create_all using a synchronous SQLAlchemy engine.

    This bypasses event-loop issues entirely, so it can be called from
    plain (non-async) pytest fixtures.
    """
    sync_url = build_sync_db_url(db_url or settings.DB_URL)
    sync_engine = create_sync_engine(sync_url)

    with sync_engine.begin() as conn:
        Base.metadata.drop_all(bind=conn)
        Base.metadata.create_all(bind=conn)

    sync_engine.dispose()
