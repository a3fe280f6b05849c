"""Per-file ingestion pipeline.

extract -> hash -> normalize -> dedup keys -> lock -> existing-record check
-> content-addressed upload -> insert -> unlock
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from be.parsers import validate_resume_upload
from be.schemas import CandidateCreate, CandidateRecord, CandidateSubmission, ParsedResume
from be.storage import ResumeStore
from be.store import CandidateStore

from .dedup import (
    ExclusionLock,
    build_dedup_keys,
    compute_resume_hash,
    duplicate_from_match,
    find_existing_candidate,
)
from .extraction import extract_resume
from .ingest import CandidateWriter
from .normalization import (
    normalize_candidate_payload,
    normalize_email,
    normalize_name,
    normalize_phone,
    normalize_skills,
)

logger = logging.getLogger(__name__)

ResumeExtractor = Callable[[bytes, str | None], ParsedResume]


@dataclass
class ResumeFile:
    """An uploaded resume held in memory.

    ``size`` is the declared upload size when the body was not read (too
    large); otherwise the content length is used.
    """
    filename: str
    content: bytes
    content_type: str | None = None
    size: int | None = None


@dataclass
class IngestionContext:
    """Collaborators shared by every pipeline run in one process."""
    store: CandidateStore
    resume_store: ResumeStore
    lock: ExclusionLock = field(default_factory=ExclusionLock)
    extractor: ResumeExtractor = extract_resume
    max_file_size_bytes: int | None = None

    @property
    def writer(self) -> CandidateWriter:
        return CandidateWriter(self.store)


def validate_resume_file(file: ResumeFile, context: IngestionContext) -> None:
    validate_resume_upload(
        file.filename,
        file.content_type,
        file.size if file.size is not None else len(file.content),
        max_size_bytes=context.max_file_size_bytes,
    )


async def ingest_resume(file: ResumeFile, context: IngestionContext) -> CandidateRecord:
    """Validate and ingest one resume.

    Raises:
        InvalidResumeError: Upload rejected before entering the pipeline.
        DuplicateCandidateError: Identity already persisted or in flight.
        ResumeStorageError / CandidateStoreError: Backend failures.
    """
    validate_resume_file(file, context)
    return await save_candidate_from_file(file, context)


async def save_candidate_from_file(file: ResumeFile, context: IngestionContext) -> CandidateRecord:
    logger.info(f"Processing resume: {file.filename}")

    parsed = await asyncio.to_thread(context.extractor, file.content, file.filename)
    resume_hash = compute_resume_hash(file.content)
    resume_url = context.resume_store.public_url(resume_hash)
    payload = normalize_candidate_payload(parsed, resume_url)
    dedup_keys = build_dedup_keys(payload.email, payload.phone, resume_hash)

    with context.lock.hold(dedup_keys, email=payload.email, phone=payload.phone, resume_url=resume_url):
        existing = await find_existing_candidate(
            context.store,
            email=payload.email,
            phone=payload.phone,
            resume_url=resume_url,
        )
        if existing is not None:
            logger.info(f"Duplicate candidate skipped for {file.filename} (matched by {existing.match_by})")
            raise duplicate_from_match(existing)

        created = await context.resume_store.put(resume_hash, file.content)
        if not created:
            # Blob was already there: someone may have committed this file since the first check
            existing = await find_existing_candidate(
                context.store,
                email=payload.email,
                phone=payload.phone,
                resume_url=resume_url,
            )
            if existing is not None:
                raise duplicate_from_match(existing)

        candidate = await context.writer.insert(payload)

    logger.info(f"Saved candidate {candidate.id} from {file.filename}")
    return candidate


async def submit_candidate(
    submission: CandidateSubmission,
    context: IngestionContext,
    resume: ResumeFile | None = None,
) -> CandidateRecord:
    """Persist a candidate entered through the intake form.

    Identity is email and phone only; an attached resume is stored at its
    content address but does not take part in the in-process lock.
    """
    email = normalize_email(submission.email)
    phone = normalize_phone(submission.phone)

    resume_hash = None
    resume_url = None
    if resume is not None:
        validate_resume_file(resume, context)
        resume_hash = compute_resume_hash(resume.content)
        resume_url = context.resume_store.public_url(resume_hash)

    payload = CandidateCreate(
        **submission.model_dump(exclude={"name", "email", "phone", "skills"}),
        name=normalize_name(submission.name),
        email=email,
        phone=phone,
        skills=normalize_skills(submission.skills),
        resume_url=resume_url,
    )

    with context.lock.hold(build_dedup_keys(email, phone), email=email, phone=phone):
        existing = await find_existing_candidate(context.store, email=email, phone=phone)
        if existing is not None:
            raise duplicate_from_match(existing)

        if resume is not None:
            await context.resume_store.put(resume_hash, resume.content)

        return await context.writer.insert(payload)
