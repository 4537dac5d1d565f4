"""Async SQLAlchemy engine and session factory, built per application.

Learn: create_app() calls build_engine(settings) and keeps the engine and
its session factory on app.state, so the database URL comes from the
same injected Settings as the JWT secret. get_db reads the factory off
the request's app. Building an engine never connects; the pool opens its
first connection on the first query.
"""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from accessgate.config import Settings

POOL_SIZE = 5
MAX_OVERFLOW = 15


def build_engine(settings: Settings) -> AsyncEngine:
    # echo=True with ACCESSGATE_DEBUG to see SQL queries
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """One session per request; objects stay usable after commit."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: a session from this app's factory, closed after the request."""
    async with request.app.state.session_factory() as session:
        yield session
