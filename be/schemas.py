"""Data shapes shared by the pipelines, the store and the API."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


@dataclass
class ParsedResume:
    """Best-effort guess produced by a resume extractor. Every field may be empty."""
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    skills: list[str] = field(default_factory=list)


class CandidateCreate(BaseModel):
    """Normalized insert payload."""
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    skills: list[str] = Field(default_factory=list)
    resume_url: str | None = None
    status: int = 5
    is_bookmarked: bool = False
    last_ctc: str | None = None
    expected_ctc: str | None = None
    notice_period: str | None = None
    notice_end_date: str | None = None
    experience: str | None = None
    current_location: str | None = None


class CandidateRecord(CandidateCreate):
    """A persisted candidate."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class CandidateSubmission(BaseModel):
    """Candidate entered through the intake form (raw, not yet normalized)."""
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    skills: list[str] = Field(default_factory=list)
    last_ctc: str | None = None
    expected_ctc: str | None = None
    notice_period: str | None = None
    notice_end_date: str | None = None
    experience: str | None = None
    current_location: str | None = None
    is_bookmarked: bool = False
