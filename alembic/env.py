"""Alembic environment for AgencyOps.

There is no alembic.ini: the database URL always comes from
``Settings.DATABASE_URL`` (environment / .env), and migrations run through
the async driver. Offline mode renders SQL to stdout.
"""

import asyncio
import logging

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from agencyops.config.settings import get_settings
from agencyops.db.session import Base
import agencyops.db.tables  # noqa: F401  register all ORM rows

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata
database_url = get_settings().DATABASE_URL


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=database_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    # SQLite cannot ALTER most constraints in place
    _configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = create_async_engine(database_url, poolclass=NullPool)
    try:
        async with connectable.connect() as connection:
            logger.info("Migrating %s", connection.engine.url.render_as_string(hide_password=True))
            await connection.run_sync(_run_with_connection)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
