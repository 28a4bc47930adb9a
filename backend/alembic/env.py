"""Alembic environment - runs migrations over the application's async engine."""

import asyncio

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from shiftboard.config import settings
from shiftboard.database import Base, _normalize_url
import shiftboard.models  # noqa: F401  registers tables on Base.metadata

config = context.config
target_metadata = Base.metadata


def get_url() -> str:
    return _normalize_url(settings.database_url or config.get_main_option("sqlalchemy.url"))


def run_migrations_offline() -> None:
    context.configure(url=get_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(get_url())
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
