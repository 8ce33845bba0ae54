"""Alembic environment for the article feed schema.

Runs migrations through the application's async engine settings, in
offline mode (emit SQL) or online mode (apply to a live database).
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.pool import NullPool

from articlefeed.config import settings
from articlefeed.database import Base, build_engine

# Registers the tables on Base.metadata for autogenerate.
import articlefeed.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The database URL lives in Settings (.env / environment), not alembic.ini.
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Hand Alembic a sync connection borrowed from an async engine."""
    connectable = build_engine(settings.DATABASE_URL, poolclass=NullPool)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
