"""
Alembic Migration Environment
===============================

Migrations for the `schools` table. The database URL always comes from
app settings (DATABASE_URL), never from alembic.ini, so the app and its
migrations cannot point at different databases.

    alembic upgrade head            apply against DATABASE_URL
    alembic upgrade head --sql      print the SQL instead (offline mode)
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

from app.config import settings
from app.database import Base

# Registers the table on Base.metadata for --autogenerate
from app.models.school import School  # noqa: F401

alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

# Options shared by offline and online runs
CONTEXT_OPTIONS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    "compare_server_default": True,
}


def run_offline(url: str) -> None:
    """Emit migration SQL for `url`'s dialect without connecting."""
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONTEXT_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def apply_migrations(connection: Connection) -> None:
    context.configure(connection=connection, **CONTEXT_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


async def run_online(url: str) -> None:
    # One-off connection; the app's pool settings do not apply here
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(apply_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline(settings.database_url)
else:
    asyncio.run(run_online(settings.database_url))
