"""FastAPI app with health, resume upload, bulk upload, listing and search endpoints.

Ingestion collaborators live on ``app.state.ingestion`` (built once in the
lifespan) so every request shares one in-process dedup lock.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field
from starlette.datastructures import UploadFile as StarletteUploadFile

from .config import StorageBackend, settings
from .db import AsyncSessionMaker
from .logging_config import setup_logging
from .parsers import ParseError
from .pipelines.bulk import FileOutcome, ingest_many
from .pipelines.dedup import DuplicateCandidateError, ExclusionLock
from .pipelines.normalization import parse_skills_field
from .pipelines.processing import IngestionContext, ResumeFile, ingest_resume, submit_candidate
from .pipelines.search import parse_skills_param, search_candidates
from .schemas import CandidateRecord, CandidateSubmission
from .storage import ResumeStorageError, ResumeStore, build_blob_backend
from .store import CandidateStoreError, SqlCandidateStore

logger = logging.getLogger(__name__)


# Pydantic response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class DuplicateResponse(ErrorResponse):
    """Duplicate candidate response."""
    duplicate_candidate_id: int | None = None
    match_by: str | None = None


class UploadResumeResponse(BaseModel):
    """Single resume upload response."""
    message: str
    candidate: CandidateRecord


class FileResultDTO(BaseModel):
    """One file of a bulk upload."""
    file_name: str
    ok: bool
    candidate: CandidateRecord | None = None
    error: str | None = None
    duplicate_candidate_id: int | None = None
    match_by: str | None = None


class BulkUploadResponse(BaseModel):
    """Bulk upload response."""
    message: str
    total_files: int
    concurrency_used: int
    max_files_per_request: int | str
    uploaded_count: int
    failed_count: int
    overall: str
    uploaded: list[FileResultDTO] = Field(default_factory=list)
    failed: list[FileResultDTO] = Field(default_factory=list)
    results: list[FileResultDTO] = Field(default_factory=list)


class SubmitCandidateResponse(BaseModel):
    """Manual submission response."""
    ok: bool
    candidate: CandidateRecord


class CandidateListResponse(BaseModel):
    """Paged candidate list."""
    count: int
    total_count: int
    limit: int
    offset: int
    candidates: list[CandidateRecord]


class SearchResponse(BaseModel):
    """Skill search response."""
    count: int
    candidates: list[CandidateRecord]


def build_ingestion_context() -> IngestionContext:
    """Wire the production collaborators from settings."""
    backend = build_blob_backend(settings.storage)
    return IngestionContext(
        store=SqlCandidateStore(AsyncSessionMaker),
        resume_store=ResumeStore(backend, settings.storage.path_prefix),
        lock=ExclusionLock(),
        max_file_size_bytes=settings.ingestion.max_file_size_bytes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    if getattr(app.state, "ingestion", None) is None:
        app.state.ingestion = build_ingestion_context()
    logger.info(f"Application starting up (storage backend: {settings.storage.backend.value})")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title="Candidate Intake Service",
    version=settings.version,
    description="Resume ingestion with candidate deduplication",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.storage.backend == StorageBackend.LOCAL:
    app.mount(
        "/files",
        StaticFiles(directory=Path(settings.storage.local_root), check_dir=False),
        name="files",
    )


def get_ingestion_context(request: Request) -> IngestionContext:
    return request.app.state.ingestion


# Exception handlers
@app.exception_handler(DuplicateCandidateError)
async def duplicate_error_handler(request, exc: DuplicateCandidateError):
    """Handle duplicate candidates (persisted or in flight)."""
    logger.info(f"Duplicate candidate: {exc} (match_by={exc.match_by})")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=DuplicateResponse(
            error="duplicate_candidate",
            detail=str(exc),
            duplicate_candidate_id=exc.candidate_id,
            match_by=exc.match_by,
        ).model_dump(),
    )


@app.exception_handler(ParseError)
async def parse_error_handler(request, exc: ParseError):
    """Handle rejected or unreadable uploads."""
    logger.warning(f"Parse error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="invalid_resume", detail=str(exc)).model_dump(),
    )


@app.exception_handler(ResumeStorageError)
async def storage_error_handler(request, exc: ResumeStorageError):
    """Handle blob storage failures."""
    logger.error(f"Storage error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="storage_error", detail=str(exc)).model_dump(),
    )


@app.exception_handler(CandidateStoreError)
async def store_error_handler(request, exc: CandidateStoreError):
    """Handle database failures."""
    logger.error(f"Store error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="database_error", detail=str(exc)).model_dump(),
    )


async def read_uploaded_files(
    request: Request,
    *,
    max_files: int | None = None,
    max_file_size_bytes: int | None = None,
) -> list[ResumeFile]:
    """Collect every uploaded file from the multipart body, whatever its field name.

    Parts are spooled by Starlette; an oversized part is never read into
    memory and comes back empty with its declared size, so validation
    rejects it.
    """
    form = await request.form(max_files=(max_files or 10_000) + 1)
    uploads = [value for _, value in form.multi_items() if isinstance(value, StarletteUploadFile)]

    if max_files and len(uploads) > max_files:
        await form.close()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Max {max_files} files per request.",
        )

    files = [await read_upload(upload, max_file_size_bytes) for upload in uploads]
    await form.close()
    return files


async def read_upload(upload: StarletteUploadFile, max_file_size_bytes: int | None = None) -> ResumeFile:
    if max_file_size_bytes is not None and upload.size is not None and upload.size > max_file_size_bytes:
        logger.info(f"Skipping read of oversized upload {upload.filename} ({upload.size} bytes)")
        return ResumeFile(
            filename=upload.filename or "",
            content=b"",
            content_type=upload.content_type,
            size=upload.size,
        )

    return ResumeFile(
        filename=upload.filename or "",
        content=await upload.read(),
        content_type=upload.content_type,
    )


def to_file_result(outcome: FileOutcome) -> FileResultDTO:
    return FileResultDTO(
        file_name=outcome.file_name,
        ok=outcome.ok,
        candidate=outcome.candidate,
        error=outcome.error,
        duplicate_candidate_id=outcome.duplicate_of,
        match_by=outcome.match_by,
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "upload_resume": "/upload-resume",
            "upload_resumes": "/upload-resumes",
            "submit_candidate": "/upload",
            "candidates": "/candidates",
            "candidate": "/candidate/{candidate_id}",
            "search": "/search?skills=a,b",
            "docs": "/docs",
        },
    }


@app.post(
    "/upload-resume",
    response_model=UploadResumeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": DuplicateResponse}, 400: {"model": ErrorResponse}},
)
async def upload_resume(
    request: Request,
    context: IngestionContext = Depends(get_ingestion_context),
) -> UploadResumeResponse:
    """Upload one PDF resume and save the candidate.

    Duplicates (same email, phone or file, persisted or currently being
    processed) are rejected with 409 and the existing candidate id.
    """
    files = await read_uploaded_files(request, max_file_size_bytes=context.max_file_size_bytes)

    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing file. Send one PDF in form-data.",
        )
    if len(files) > 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Too many files for /upload-resume. Send exactly one PDF.",
        )

    logger.info(f"Received resume upload: {files[0].filename}")

    try:
        candidate = await ingest_resume(files[0], context)
    except (DuplicateCandidateError, ParseError, ResumeStorageError, CandidateStoreError):
        raise
    except Exception as e:
        logger.error(f"Resume upload failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process resume: {str(e)}",
        )

    return UploadResumeResponse(
        message="Resume uploaded and candidate saved successfully.",
        candidate=candidate,
    )


@app.post(
    "/upload-resumes",
    response_model=BulkUploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses={207: {"model": BulkUploadResponse}, 400: {"model": ErrorResponse}},
)
async def upload_resumes(
    request: Request,
    response: Response,
    context: IngestionContext = Depends(get_ingestion_context),
) -> BulkUploadResponse:
    """Upload many PDF resumes; each file succeeds or fails on its own.

    Returns 201 when every file was saved and 207 when any file failed.
    """
    ingestion = settings.ingestion
    max_files = ingestion.max_files_per_request
    files = await read_uploaded_files(
        request,
        max_files=max_files or None,
        max_file_size_bytes=context.max_file_size_bytes,
    )

    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing files. Send one or more PDFs in form-data.",
        )

    report = await ingest_many(files, context, ingestion.bulk_upload_concurrency)

    if report.failed:
        response.status_code = status.HTTP_207_MULTI_STATUS

    return BulkUploadResponse(
        message=(
            "Bulk upload finished with partial failures."
            if report.failed
            else "Bulk upload finished successfully."
        ),
        total_files=report.total_files,
        concurrency_used=report.concurrency_used,
        max_files_per_request=max_files if max_files > 0 else "unlimited",
        uploaded_count=report.uploaded_count,
        failed_count=report.failed_count,
        overall=report.overall,
        uploaded=[to_file_result(o) for o in report.uploaded],
        failed=[to_file_result(o) for o in report.failed],
        results=[to_file_result(o) for o in report.outcomes],
    )


@app.post(
    "/upload",
    response_model=SubmitCandidateResponse,
    responses={409: {"model": DuplicateResponse}},
)
async def submit_candidate_form(
    name: str | None = Form(default=None),
    email: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    skills: str | None = Form(default=None),
    last_ctc: str | None = Form(default=None, alias="lastCtc"),
    expected_ctc: str | None = Form(default=None, alias="expectedCtc"),
    notice_period: str | None = Form(default=None, alias="noticePeriod"),
    notice_end_date: str | None = Form(default=None, alias="noticeEndDate"),
    experience: str | None = Form(default=None),
    current_location: str | None = Form(default=None),
    is_bookmarked: str | None = Form(default=None),
    resume: UploadFile | None = File(default=None),
    context: IngestionContext = Depends(get_ingestion_context),
):
    """Save a candidate entered through the intake form, with an optional resume."""
    submission = CandidateSubmission(
        name=name,
        email=email,
        phone=phone,
        skills=parse_skills_field(skills),
        last_ctc=last_ctc or None,
        expected_ctc=expected_ctc or None,
        notice_period=notice_period or None,
        notice_end_date=notice_end_date or None,
        experience=experience or None,
        current_location=current_location or None,
        is_bookmarked=is_bookmarked == "true",
    )

    resume_file = None
    if resume is not None and resume.filename:
        resume_file = await read_upload(resume, context.max_file_size_bytes)
        await resume.close()

    try:
        candidate = await submit_candidate(submission, context, resume_file)
    except DuplicateCandidateError as e:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=DuplicateResponse(
                error="duplicate_candidate",
                detail="User already exists with same email or phone number.",
                duplicate_candidate_id=e.candidate_id,
                match_by=e.match_by,
            ).model_dump(),
        )

    return SubmitCandidateResponse(ok=True, candidate=candidate)


@app.get("/candidates", response_model=CandidateListResponse)
async def list_candidates(
    limit: int = Query(default=50),
    offset: int = Query(default=0),
    context: IngestionContext = Depends(get_ingestion_context),
) -> CandidateListResponse:
    """Newest candidates first."""
    limit = min(max(limit, 1), 200)
    offset = max(offset, 0)

    candidates = await context.store.list_recent(limit=limit, offset=offset)
    total = await context.store.count()

    return CandidateListResponse(
        count=len(candidates),
        total_count=total,
        limit=limit,
        offset=offset,
        candidates=candidates,
    )


@app.get("/candidate/{candidate_id}", response_model=CandidateRecord)
async def get_candidate(
    candidate_id: int,
    context: IngestionContext = Depends(get_ingestion_context),
) -> CandidateRecord:
    candidate = await context.store.get(candidate_id)
    if candidate is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found.")
    return candidate


@app.get("/search", response_model=SearchResponse)
async def search(
    skills: str | None = Query(default=None),
    context: IngestionContext = Depends(get_ingestion_context),
) -> SearchResponse:
    """Candidates having every requested skill (comma-separated)."""
    terms = parse_skills_param(skills)
    if not terms:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing skills query parameter. Example: /search?skills=java,spring",
        )

    candidates = await search_candidates(context.store, terms)
    return SearchResponse(count=len(candidates), candidates=candidates)
