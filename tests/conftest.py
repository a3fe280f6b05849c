"""
Pytest configuration and shared fixtures.

Ingestion tests run against an in-memory candidate store that enforces the
same uniqueness rules as the database indexes, a filesystem blob backend under
tmp_path, and a fake extractor that reads identity fields straight out of
the uploaded bytes (no PDF parsing, no OCR).
"""

import asyncio
import itertools
import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from be.pipelines.dedup import ExclusionLock
from be.pipelines.processing import IngestionContext, ResumeFile
from be.schemas import CandidateCreate, CandidateRecord, ParsedResume
from be.storage import LocalBlobBackend, ResumeStore
from be.store import UniqueViolationError


TEST_PUBLIC_BASE_URL = "http://testserver/files"
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")
    config.addinivalue_line("markers", "db: requires a PostgreSQL database (DB_URL)")


def pytest_collection_modifyitems(config, items):
    run_db = os.environ.get("RUN_DB_TESTS") == "1"
    skip_db = pytest.mark.skip(reason="db tests skipped by default; set RUN_DB_TESTS=1 to enable")

    for item in items:
        if "db" in item.keywords and not run_db:
            item.add_marker(skip_db)


class InMemoryCandidateStore:
    """CandidateStore with the database's uniqueness rules.

    ``insert`` yields to the event loop before checking constraints, so
    concurrent inserts genuinely interleave.
    """

    def __init__(self):
        self.records: list[CandidateRecord] = []
        self.insert_calls = 0
        self._ids = itertools.count(1)

    def _newest(self, predicate):
        for record in sorted(self.records, key=lambda r: (r.created_at, r.id), reverse=True):
            if predicate(record):
                return record
        return None

    async def find_by_email(self, email):
        return self._newest(lambda r: (r.email or "").lower() == email.lower())

    async def find_by_phone(self, phone):
        return self._newest(lambda r: r.phone == phone)

    async def find_by_resume_url(self, resume_url):
        return self._newest(lambda r: r.resume_url == resume_url)

    def _conflicts(self, payload: CandidateCreate) -> bool:
        for record in self.records:
            if payload.email and record.email and payload.email.lower() == record.email.lower():
                return True
            if payload.phone and record.phone == payload.phone:
                return True
            if payload.resume_url and record.resume_url == payload.resume_url:
                return True
        return False

    async def insert(self, payload):
        self.insert_calls += 1
        await asyncio.sleep(0)
        if self._conflicts(payload):
            raise UniqueViolationError("duplicate key value violates unique constraint")

        candidate_id = next(self._ids)
        record = CandidateRecord(
            **payload.model_dump(),
            id=candidate_id,
            created_at=_EPOCH + timedelta(seconds=candidate_id),
        )
        self.records.append(record)
        return record

    async def get(self, candidate_id):
        return next((r for r in self.records if r.id == candidate_id), None)

    async def list_recent(self, *, limit, offset=0):
        ordered = sorted(self.records, key=lambda r: (r.created_at, r.id), reverse=True)
        return ordered[offset:offset + limit]

    async def count(self):
        return len(self.records)

    async def search_by_skills(self, terms):
        def has_substrings(record):
            skills = [skill.lower() for skill in record.skills]
            return all(any(term.lower() in skill for skill in skills) for term in terms)

        ordered = sorted(self.records, key=lambda r: (r.created_at, r.id), reverse=True)
        return [r for r in ordered if has_substrings(r)]


def make_resume_bytes(*, name=None, email=None, phone=None, skills=(), salt=""):
    """Bytes the fake extractor understands. ``salt`` makes otherwise identical resumes differ."""
    lines = ["%PDF-1.4"]
    if name:
        lines.append(f"name: {name}")
    if email:
        lines.append(f"email: {email}")
    if phone:
        lines.append(f"phone: {phone}")
    if skills:
        lines.append(f"skills: {','.join(skills)}")
    if salt:
        lines.append(f"salt: {salt}")
    return "\n".join(lines).encode("utf-8")


class FakeExtractor:
    """Reads ``key: value`` lines; optionally sleeps to widen race windows."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls = 0

    def __call__(self, content, filename=None):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)

        fields = {}
        for line in content.decode("utf-8", errors="ignore").splitlines():
            key, sep, value = line.partition(": ")
            if sep:
                fields[key] = value
        skills = [s for s in fields.get("skills", "").split(",") if s]
        return ParsedResume(
            name=fields.get("name"),
            email=fields.get("email"),
            phone=fields.get("phone"),
            skills=skills,
        )


def pdf_file(content, filename="resume.pdf", content_type="application/pdf"):
    return ResumeFile(filename=filename, content=content, content_type=content_type)


@pytest.fixture
def store():
    return InMemoryCandidateStore()


@pytest.fixture
def blob_backend(tmp_path):
    return LocalBlobBackend(tmp_path / "blobs", "resumes", TEST_PUBLIC_BASE_URL)


@pytest.fixture
def resume_store(blob_backend):
    return ResumeStore(blob_backend, "uploads")


@pytest.fixture
def extractor():
    return FakeExtractor(delay=0.01)


@pytest.fixture
def context(store, resume_store, extractor):
    return IngestionContext(
        store=store,
        resume_store=resume_store,
        lock=ExclusionLock(),
        extractor=extractor,
        max_file_size_bytes=1024 * 1024,
    )
