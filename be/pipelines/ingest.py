"""Candidate writer.

Insert is the second half of a check-then-write contract: callers run the
existing-record finder first, then insert here. A uniqueness violation means
another writer committed in between; the winner is looked up and reported.
"""

from __future__ import annotations

import logging

from be.schemas import CandidateCreate, CandidateRecord
from be.store import CandidateStore, UniqueViolationError

from .dedup import duplicate_from_match, find_existing_candidate

logger = logging.getLogger(__name__)


class CandidateWriter:
    """Persists normalized candidates, turning late uniqueness conflicts into duplicates."""

    def __init__(self, store: CandidateStore) -> None:
        self.store = store

    async def insert(self, payload: CandidateCreate) -> CandidateRecord:
        """Insert ``payload``.

        Raises:
            DuplicateCandidateError: If the store reports a uniqueness violation.
            CandidateWriteError: For any other write failure (propagated unchanged).
        """
        try:
            return await self.store.insert(payload)
        except UniqueViolationError as e:
            logger.warning(f"Unique violation on insert, resolving winner: {e}")
            winner = await find_existing_candidate(
                self.store,
                email=payload.email,
                phone=payload.phone,
                resume_url=payload.resume_url,
            )
            raise duplicate_from_match(winner) from e
