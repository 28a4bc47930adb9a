"""Async database engine, declarative base and session dependency."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shiftboard.config import settings


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _normalize_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
    """Lazily build the session factory. Returns None when no database is configured."""
    global _engine, _session_factory
    if not settings.database_url:
        return None
    if _session_factory is None:
        _engine = create_async_engine(
            _normalize_url(settings.database_url),
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            echo=settings.database_echo,
        )
        _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession | None, None]:
    """Yield a request-scoped session, or None without a configured database."""
    factory = get_session_factory()
    if factory is None:
        yield None
        return
    async with factory() as session:
        yield session


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
