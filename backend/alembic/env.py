"""Alembic environment: async engine, metadata from opengrc.models.

The URL comes from the same pydantic settings the service uses (env var
or backend/.env); alembic.ini's sqlalchemy.url is only the fallback for
a bare checkout.
"""
import asyncio
from logging.config import fileConfig

from pydantic import ValidationError
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from opengrc.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

try:
    from opengrc.config import Settings

    # ConfigParser interpolation would eat %-escapes in passwords
    config.set_main_option("sqlalchemy.url", Settings().DATABASE_URL.replace("%", "%%"))
except ValidationError:
    pass

target_metadata = Base.metadata


def _is_sqlite() -> bool:
    return config.get_main_option("sqlalchemy.url", "").startswith("sqlite")


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(),
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=_is_sqlite(),
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
