"""Candidate deduplication primitives.

- content hashing of resume bytes
- dedup key derivation (``email:``, ``phone:``, ``hash:`` tokens)
- an in-process exclusion lock over dedup keys
- the existing-record finder used before and after writes

The lock is local to one process. Running several instances behind a load
balancer reopens the race across instances; the store's unique indexes stay
the final authority either way.
"""
from __future__ import annotations

import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Iterator, TypeVar

from be.schemas import CandidateRecord
from be.store import CandidateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMAIL = "email"
PHONE = "phone"
HASH = "hash"
RESUME = "resume"
CONSTRAINT = "constraint"


class DuplicateCandidateError(Exception):
    """Raised when a candidate already exists for one of the identity keys."""

    def __init__(
        self,
        message: str,
        *,
        match_by: str,
        candidate: CandidateRecord | None = None,
    ) -> None:
        super().__init__(message)
        self.match_by = match_by
        self.candidate = candidate

    @property
    def candidate_id(self) -> int | None:
        return self.candidate.id if self.candidate is not None else None


class DuplicateInFlightError(DuplicateCandidateError):
    """Raised when the same identity is being ingested by another in-flight attempt.

    The holder has not committed yet, so no candidate id is known here. The
    losing attempt records its own identity (``email``, ``phone``,
    ``resume_url``) so a caller can look the winner up once it has finished.
    """

    def __init__(
        self,
        key: str,
        *,
        email: str | None = None,
        phone: str | None = None,
        resume_url: str | None = None,
    ) -> None:
        super().__init__(
            "Duplicate candidate is already being processed.",
            match_by=key.split(":", 1)[0],
        )
        self.key = key
        self.email = email
        self.phone = phone
        self.resume_url = resume_url


@dataclass
class ExistingMatch:
    """A persisted candidate and the dimension it matched on."""
    candidate: CandidateRecord
    match_by: str


def compute_resume_hash(data: bytes) -> str:
    """SHA-256 hex digest of the exact resume bytes."""
    return hashlib.sha256(data).hexdigest()


def build_dedup_keys(
    email: str | None,
    phone: str | None,
    resume_hash: str | None = None,
) -> list[str]:
    """Sorted, de-duplicated identity tokens for one ingestion attempt.

    Sorting gives every attempt the same acquisition order over shared keys.
    """
    keys = {
        f"{EMAIL}:{email}" if email else None,
        f"{PHONE}:{phone}" if phone else None,
        f"{HASH}:{resume_hash}" if resume_hash else None,
    }
    return sorted(key for key in keys if key)


class ExclusionLock:
    """Fail-fast, non-blocking claim over sets of dedup keys.

    ``try_acquire_all`` and ``release_all`` never await, so under asyncio the
    check-and-mark is atomic with respect to other tasks.
    """

    def __init__(self) -> None:
        self._held: set[str] = set()

    def try_acquire_all(self, keys: Iterable[str], **identity: str | None) -> list[str]:
        """Mark every key as held, or none of them.

        ``identity`` (email, phone, resume_url) is attached to the error so the
        loser can resolve the winner later.

        Raises:
            DuplicateInFlightError: naming the first key already held.
        """
        wanted = sorted(set(keys))
        for key in wanted:
            if key in self._held:
                logger.info(f"Dedup key {key} is already in flight")
                raise DuplicateInFlightError(key, **identity)
        self._held.update(wanted)
        return wanted

    def release_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._held.discard(key)

    @contextmanager
    def hold(self, keys: Iterable[str], **identity: str | None) -> Iterator[list[str]]:
        """Hold ``keys`` for the duration of the block; release on every exit path."""
        acquired = self.try_acquire_all(keys, **identity)
        try:
            yield acquired
        finally:
            self.release_all(acquired)

    async def run_exclusive(self, keys: Iterable[str], operation: Callable[[], Awaitable[T]]) -> T:
        with self.hold(keys):
            return await operation()

    def is_held(self, key: str) -> bool:
        return key in self._held

    @property
    def held_count(self) -> int:
        return len(self._held)


async def find_existing_candidate(
    store: CandidateStore,
    *,
    email: str | None = None,
    phone: str | None = None,
    resume_url: str | None = None,
) -> ExistingMatch | None:
    """Look up a persisted candidate by email, then phone, then resume URL."""
    if email:
        found = await store.find_by_email(email)
        if found is not None:
            return ExistingMatch(found, EMAIL)

    if phone:
        found = await store.find_by_phone(phone)
        if found is not None:
            return ExistingMatch(found, PHONE)

    if resume_url:
        found = await store.find_by_resume_url(resume_url)
        if found is not None:
            return ExistingMatch(found, RESUME)

    return None


def duplicate_from_match(match: ExistingMatch | None) -> DuplicateCandidateError:
    """Build the duplicate error for a finder result (``constraint`` when unknown)."""
    match_by = match.match_by if match is not None else CONSTRAINT
    return DuplicateCandidateError(
        f"Duplicate candidate skipped (matched by {match_by}).",
        match_by=match_by,
        candidate=match.candidate if match is not None else None,
    )
