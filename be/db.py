"""SQLAlchemy 2.x async database setup.

This module defines the async engine and session factory but does not
hard-code any connection credentials.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def create_engine_from_url(url: str, *, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo, future=True)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


engine: AsyncEngine = create_engine_from_url(settings.db.url, echo=settings.db.echo)

AsyncSessionMaker = create_session_maker(engine)
