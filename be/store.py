"""Candidate persistence.

``CandidateStore`` is the interface the ingestion pipeline consumes;
``SqlCandidateStore`` implements it on SQLAlchemy. Each call opens its own
session so concurrent pipeline runs never share a transaction.
"""
from __future__ import annotations

import json
import logging
from typing import Protocol

from sqlalchemy import Text, cast, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import models
from .schemas import CandidateCreate, CandidateRecord

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION_SQLSTATE = "23505"


class CandidateStoreError(Exception):
    """Raised when a store query fails."""
    pass


class CandidateWriteError(CandidateStoreError):
    """Raised when an insert fails for a reason other than a uniqueness conflict."""
    pass


class UniqueViolationError(CandidateStoreError):
    """Raised when an insert collides with an existing email, phone or resume URL."""
    pass


class CandidateStore(Protocol):
    async def find_by_email(self, email: str) -> CandidateRecord | None: ...

    async def find_by_phone(self, phone: str) -> CandidateRecord | None: ...

    async def find_by_resume_url(self, resume_url: str) -> CandidateRecord | None: ...

    async def insert(self, payload: CandidateCreate) -> CandidateRecord: ...

    async def get(self, candidate_id: int) -> CandidateRecord | None: ...

    async def list_recent(self, *, limit: int, offset: int = 0) -> list[CandidateRecord]: ...

    async def count(self) -> int: ...

    async def search_by_skills(self, terms: list[str]) -> list[CandidateRecord]: ...


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a unique constraint violation.

    asyncpg exposes ``sqlstate``, psycopg exposes ``pgcode``/``sqlstate``;
    SQLite only reports it in the message.
    """
    orig = getattr(exc, "orig", None)
    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) == _UNIQUE_VIOLATION_SQLSTATE:
            return True
    cause = getattr(orig, "__cause__", None)
    if getattr(cause, "sqlstate", None) == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "unique" in str(orig or exc).lower()


class SqlCandidateStore:
    """SQLAlchemy-backed candidate store."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def _first(self, query, what: str) -> CandidateRecord | None:
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                row = result.scalars().first()
        except SQLAlchemyError as e:
            raise CandidateStoreError(f"Failed duplicate check by {what}: {e}") from e
        return CandidateRecord.model_validate(row) if row is not None else None

    def _latest(self):
        return select(models.Candidate).order_by(
            models.Candidate.created_at.desc(),
            models.Candidate.id.desc(),
        ).limit(1)

    async def find_by_email(self, email: str) -> CandidateRecord | None:
        query = self._latest().where(func.lower(models.Candidate.email) == email.lower())
        return await self._first(query, "email")

    async def find_by_phone(self, phone: str) -> CandidateRecord | None:
        query = self._latest().where(models.Candidate.phone == phone)
        return await self._first(query, "phone")

    async def find_by_resume_url(self, resume_url: str) -> CandidateRecord | None:
        query = self._latest().where(models.Candidate.resume_url == resume_url)
        return await self._first(query, "resume URL")

    async def insert(self, payload: CandidateCreate) -> CandidateRecord:
        candidate = models.Candidate(**payload.model_dump())
        async with self._session_maker() as session:
            try:
                session.add(candidate)
                await session.commit()
                await session.refresh(candidate)
            except IntegrityError as e:
                await session.rollback()
                if is_unique_violation(e):
                    raise UniqueViolationError(str(e.orig or e)) from e
                raise CandidateWriteError(f"Failed to save candidate in database: {e}") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise CandidateWriteError(f"Failed to save candidate in database: {e}") from e
            return CandidateRecord.model_validate(candidate)

    async def get(self, candidate_id: int) -> CandidateRecord | None:
        query = select(models.Candidate).where(models.Candidate.id == candidate_id)
        return await self._first(query, "id")

    async def list_recent(self, *, limit: int, offset: int = 0) -> list[CandidateRecord]:
        query = (
            select(models.Candidate)
            .order_by(models.Candidate.created_at.desc(), models.Candidate.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return await self._all(query)

    async def search_by_skills(self, terms: list[str]) -> list[CandidateRecord]:
        """Candidates whose serialized skills contain every term as a substring.

        A coarse prefilter: ``java`` also selects ``javascript``. Callers apply
        the token-boundary match on the returned rows.
        """
        skills_text = func.lower(cast(models.Candidate.skills, Text), type_=Text)
        query = select(models.Candidate).order_by(
            models.Candidate.created_at.desc(),
            models.Candidate.id.desc(),
        )
        for term in terms:
            # Match the JSON-escaped form, as stored
            needle = json.dumps(term.lower())[1:-1]
            query = query.where(skills_text.contains(needle, autoescape=True))
        return await self._all(query)

    async def count(self) -> int:
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(func.count()).select_from(models.Candidate))
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise CandidateStoreError(f"Failed to count candidates: {e}") from e

    async def _all(self, query) -> list[CandidateRecord]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise CandidateStoreError(f"Failed to list candidates: {e}") from e
        return [CandidateRecord.model_validate(row) for row in rows]
