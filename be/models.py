"""Core SQLAlchemy models (2.x style) for the candidate schema.

The unique partial indexes below are the final authority on candidate
uniqueness; the in-process dedup lock only narrows the race window.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, and_, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Candidate(Base):
    """Candidates table."""
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(32))
    skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    resume_url: Mapped[str | None] = mapped_column(Text)
    status: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_bookmarked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Intake fields from the manual submission form
    last_ctc: Mapped[str | None] = mapped_column(String(64))
    expected_ctc: Mapped[str | None] = mapped_column(String(64))
    notice_period: Mapped[str | None] = mapped_column(String(64))
    notice_end_date: Mapped[str | None] = mapped_column(String(32))
    experience: Mapped[str | None] = mapped_column(String(64))
    current_location: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_candidates_created_at", "created_at"),
    )


def _present(column):
    return and_(column.isnot(None), func.trim(column) != "")


Index(
    "uq_candidates_email_ci",
    func.lower(Candidate.email),
    unique=True,
    postgresql_where=_present(Candidate.email),
    sqlite_where=_present(Candidate.email),
)
Index(
    "uq_candidates_phone",
    Candidate.phone,
    unique=True,
    postgresql_where=_present(Candidate.phone),
    sqlite_where=_present(Candidate.phone),
)
Index(
    "uq_candidates_resume_url",
    Candidate.resume_url,
    unique=True,
    postgresql_where=_present(Candidate.resume_url),
    sqlite_where=_present(Candidate.resume_url),
)
