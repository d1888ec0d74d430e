"""
Postgres access: one async engine, a session per request, one ORM base.

Only durable data lives here (users, tokens, projects, provider keys,
usage, subscriptions). Sandbox and web-preview sessions are process
memory owned by capycode.services.sandbox and capycode.services.web_preview.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from capycode.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Routers return ORM rows after commit, so attributes must stay loaded.
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency. Routers commit; the context manager closes."""
    async with async_session_factory() as session:
        yield session


async def ping() -> None:
    """Raise if the database cannot answer SELECT 1."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
