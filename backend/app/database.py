"""
School Directory Backend: Database Engine and Session Factory
==============================================================

What:  Async SQLAlchemy engine (the connection pool), session factory and
       the declarative Base for ORM models.
Why:   The pool is created once and shared; everything that touches the
       database receives the session factory explicitly instead of reaching
       for a module global.
How:   `build_engine()` creates an engine from a URL with pool settings;
       `async_session_factory` is handed to SchoolService at construction.
Who:   app.main (lifecycle), app.routes (dependency wiring), alembic/env.py.
When:  Engine is created at module import; sessions are opened per operation.

Connection Pooling Strategy:
    pool_size=10:      persistent connections for normal load
    max_overflow=5:    temporary connections for spikes
    pool_pre_ping:     validates connections before use
    pool_recycle=300:  drops connections idle longer than the server timeout
"""

from typing import Any, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    """
    Pool options for the given URL.

    SQLite (used by the test suite) runs on SQLAlchemy's default pool for the
    dialect, which does not accept QueuePool sizing arguments.
    """
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if make_url(url).get_backend_name() == "sqlite":
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=settings.db_pool_recycle,
    )
    return options


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine (and with it, a connection pool) for `url`."""
    return create_async_engine(url, **_engine_options(url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to an engine.

    expire_on_commit=False: records returned from the repository stay readable
    after the session that loaded them is closed.
    """
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
async_session_factory = build_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


async def create_schema(bind: AsyncEngine) -> None:
    """
    Create all tables registered on Base.metadata.

    Used by the test suite and for quick local setups; deployments run the
    Alembic migrations instead.
    """
    # Import registers the model on Base.metadata
    from app.models import school  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections. Called on application shutdown."""
    await engine.dispose()
