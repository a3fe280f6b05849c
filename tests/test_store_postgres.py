"""Unique-violation detection against a real PostgreSQL (asyncpg).

Set RUN_DB_TESTS=1 and DB_URL to a disposable database to run.
"""
import asyncio
import os
import uuid

import pytest

from be.db import create_engine_from_url, create_session_maker
from be.models import Base
from be.schemas import CandidateCreate
from be.store import SqlCandidateStore, UniqueViolationError

pytestmark = pytest.mark.db


def test_postgres_unique_violation_is_detected():
    email = f"{uuid.uuid4().hex}@example.com"

    async def scenario():
        engine = create_engine_from_url(os.environ["DB_URL"])
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            store = SqlCandidateStore(create_session_maker(engine))
            saved = await store.insert(CandidateCreate(email=email))
            with pytest.raises(UniqueViolationError):
                await store.insert(CandidateCreate(email=email.upper()))
            return saved, await store.find_by_email(email.upper())
        finally:
            await engine.dispose()

    saved, found = asyncio.run(scenario())
    assert found.id == saved.id
