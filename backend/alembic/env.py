"""
Alembic environment for the asyncpg engine.

The URL is taken from capycode.core.config.settings; alembic.ini carries
no credentials. Every model module is imported below so autogenerate
sees the full schema.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from capycode.core.config import settings
from capycode.core.database import Base

import capycode.models.access_token  # noqa: F401
import capycode.models.project  # noqa: F401
import capycode.models.provider_key  # noqa: F401
import capycode.models.subscription  # noqa: F401
import capycode.models.token_usage  # noqa: F401
import capycode.models.usage  # noqa: F401
import capycode.models.user  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _run(connection: Connection | None = None) -> None:
    if connection is None:
        # Offline: emit SQL to stdout.
        context.configure(
            url=config.get_main_option("sqlalchemy.url"),
            target_metadata=target_metadata,
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
        )
    else:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

    with context.begin_transaction():
        context.run_migrations()


async def _run_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _run()
else:
    asyncio.run(_run_online())
