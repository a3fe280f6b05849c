"""Default resume extractor: PDF bytes -> best-effort name/email/phone/skills.

Everything here is heuristic. The ingestion pipeline treats every field as
optional and re-normalizes whatever comes back.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache

from ai.skills import SkillExtractor
from be.parsers import parse_pdf
from be.schemas import ParsedResume

from .normalization import normalize_phone, normalize_whitespace

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-z]{2,}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"(?:\+?\d{1,3}[\s.-]?)?(?:\(?\d{3}\)?[\s.-]?)\d{3}[\s.-]?\d{4}")
_NAME_CHARS = re.compile(r"[^a-zA-Z\s'.-]")
_DIGIT_RUN = re.compile(r"\d{3,}")

UNKNOWN_NAME = "Unknown"


@lru_cache(maxsize=1)
def _skill_extractor() -> SkillExtractor:
    return SkillExtractor()


def extract_email(text: str) -> str | None:
    match = EMAIL_PATTERN.search(text)
    return match.group(0).lower() if match else None


def extract_phone(text: str) -> str | None:
    match = PHONE_PATTERN.search(text)
    return normalize_phone(match.group(0)) if match else None


def extract_name(text: str) -> str:
    """First plausible 2-4 word line among the top 20 non-empty lines."""
    lines = [line.strip() for line in text.splitlines() if line.strip()][:20]

    for line in lines:
        if len(line) < 3 or len(line) > 60:
            continue
        if "@" in line or _DIGIT_RUN.search(line):
            continue

        cleaned = normalize_whitespace(_NAME_CHARS.sub("", line))
        words = cleaned.split(" ") if cleaned else []
        if 2 <= len(words) <= 4:
            return " ".join(word[:1].upper() + word[1:].lower() for word in words)

    return UNKNOWN_NAME


def extract_skills(text: str) -> list[str]:
    return [skill.canonical_skill.lower() for skill in _skill_extractor().extract(text)]


def parse_resume_text(text: str) -> ParsedResume:
    text = text or ""
    return ParsedResume(
        name=extract_name(text),
        email=extract_email(text),
        phone=extract_phone(text),
        skills=extract_skills(text),
    )


def extract_resume(content: bytes, filename: str | None = None) -> ParsedResume:
    """Extract identity fields from raw PDF bytes. Blocking; run it in a thread."""
    document = parse_pdf(content, filename)
    parsed = parse_resume_text(document.text)
    logger.debug(
        f"Extracted from {filename or 'resume'}: email={'yes' if parsed.email else 'no'}, "
        f"phone={'yes' if parsed.phone else 'no'}, skills={len(parsed.skills)}"
    )
    return parsed
