"""Bounded-concurrency bulk ingestion.

A fixed pool of asyncio tasks pulls indices from a shared cursor and writes
each result at its claimed index, so output order always equals input order
no matter which file finishes first.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence, TypeVar

from be.parsers import ParseError
from be.schemas import CandidateRecord
from be.store import CandidateStore, CandidateStoreError

from .dedup import (
    DuplicateCandidateError,
    DuplicateInFlightError,
    duplicate_from_match,
    find_existing_candidate,
)
from .processing import IngestionContext, ResumeFile, ingest_resume

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

OVERALL_COMPLETE = "complete"
OVERALL_PARTIAL = "partial"
OVERALL_NONE = "none"


def effective_concurrency(limit: int, total: int) -> int:
    """Clamp ``limit`` to ``[1, total]`` (1 when there is nothing to do)."""
    return max(1, min(int(limit), total))


async def process_all(
    items: Sequence[T],
    limit: int,
    handler: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Run ``handler`` over ``items`` with at most ``limit`` in flight.

    Handlers are expected not to raise. An exception from one propagates out
    of this call, but ``asyncio.gather`` does not cancel the other workers:
    they keep draining the cursor in the background.
    """
    if not items:
        return []

    results: list[R | None] = [None] * len(items)
    cursor = itertools.count()

    async def worker() -> None:
        while True:
            index = next(cursor)
            if index >= len(items):
                return
            results[index] = await handler(items[index])

    workers = effective_concurrency(limit, len(items))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results  # type: ignore[return-value]


@dataclass
class FileOutcome:
    """Result of one file in a bulk upload."""
    file_name: str
    ok: bool
    candidate: CandidateRecord | None = None
    error: str | None = None
    duplicate_of: int | None = None
    match_by: str | None = None
    in_flight: DuplicateInFlightError | None = field(default=None, repr=False)


@dataclass
class BulkIngestionReport:
    """Per-file outcomes in input order plus the tally."""
    outcomes: list[FileOutcome]
    concurrency_used: int
    uploaded: list[FileOutcome] = field(init=False)
    failed: list[FileOutcome] = field(init=False)

    def __post_init__(self) -> None:
        self.uploaded = [o for o in self.outcomes if o.ok]
        self.failed = [o for o in self.outcomes if not o.ok]

    @property
    def total_files(self) -> int:
        return len(self.outcomes)

    @property
    def uploaded_count(self) -> int:
        return len(self.uploaded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def overall(self) -> str:
        if not self.failed:
            return OVERALL_COMPLETE
        if self.uploaded:
            return OVERALL_PARTIAL
        return OVERALL_NONE


async def ingest_file_outcome(file: ResumeFile, context: IngestionContext) -> FileOutcome:
    """Ingest one file, folding every failure into a FileOutcome."""
    try:
        candidate = await ingest_resume(file, context)
    except DuplicateInFlightError as e:
        return FileOutcome(
            file_name=file.filename,
            ok=False,
            error=str(e),
            match_by=e.match_by,
            in_flight=e,
        )
    except DuplicateCandidateError as e:
        return FileOutcome(
            file_name=file.filename,
            ok=False,
            error=str(e),
            duplicate_of=e.candidate_id,
            match_by=e.match_by,
        )
    except ParseError as e:
        logger.info(f"Rejected {file.filename}: {e}")
        return FileOutcome(file_name=file.filename, ok=False, error=str(e))
    except Exception as e:
        logger.error(f"Bulk ingestion failed for {file.filename}: {e}", exc_info=True)
        return FileOutcome(file_name=file.filename, ok=False, error=str(e))

    return FileOutcome(file_name=file.filename, ok=True, candidate=candidate)


async def resolve_in_flight_duplicates(outcomes: Sequence[FileOutcome], store: CandidateStore) -> None:
    """Point in-flight duplicate outcomes at the candidate that won the lock.

    Run after every worker has finished, when each winner has either
    committed or failed. Outcomes whose winner never committed are left as is.
    """
    for outcome in outcomes:
        pending = outcome.in_flight
        if pending is None:
            continue

        try:
            match = await find_existing_candidate(
                store,
                email=pending.email,
                phone=pending.phone,
                resume_url=pending.resume_url,
            )
        except CandidateStoreError as e:
            logger.warning(f"Could not resolve in-flight duplicate for {outcome.file_name}: {e}")
            continue

        if match is not None:
            outcome.error = str(duplicate_from_match(match))
            outcome.duplicate_of = match.candidate.id
            outcome.match_by = match.match_by


async def ingest_many(
    files: Sequence[ResumeFile],
    context: IngestionContext,
    limit: int,
) -> BulkIngestionReport:
    """Ingest ``files`` with bounded concurrency; one failure never cancels siblings."""
    concurrency = effective_concurrency(limit, len(files))
    logger.info(f"Bulk ingesting {len(files)} files with concurrency {concurrency}")

    outcomes = await process_all(files, concurrency, lambda f: ingest_file_outcome(f, context))
    await resolve_in_flight_duplicates(outcomes, context.store)

    report = BulkIngestionReport(outcomes=outcomes, concurrency_used=concurrency)
    logger.info(
        f"Bulk ingestion finished: {report.uploaded_count} uploaded, {report.failed_count} failed"
    )
    return report
