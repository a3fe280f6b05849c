"""Identity normalization for candidate records.

Canonicalizes raw email/phone/name/skill values into comparable keys. Every
normalizer accepts anything (extractor output is best-effort) and returns
None for values that carry no identity.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from be.schemas import CandidateCreate, ParsedResume

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def normalize_email(value: Any) -> str | None:
    """Trim and lowercase. No format validation beyond non-empty."""
    if not value or not isinstance(value, str):
        return None

    normalized = value.strip().lower()
    return normalized or None


def normalize_phone(value: Any) -> str | None:
    """Best-effort E.164-like phone key.

    Strips every non-digit. Ten digits are assumed to be North American and
    get a ``+1`` prefix; anything else is prefixed with ``+`` as-is. This is a
    lossy heuristic: ``+44 20 7946 0958`` and ``4420 7946 0958`` collapse to
    the same key, and no country validation is done.
    """
    if not value or not isinstance(value, str):
        return None

    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None

    if len(digits) == 10:
        return f"+1{digits}"

    # 11 digits with a leading 1 already carry the country code
    return f"+{digits}"


def normalize_name(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None

    normalized = normalize_whitespace(value)
    return normalized or None


def normalize_skills(skills: Iterable[Any] | None) -> list[str]:
    """Case-fold, trim, drop empties and deduplicate (first-seen order kept)."""
    if not skills or isinstance(skills, (str, bytes)):
        return []

    seen: dict[str, None] = {}
    for skill in skills:
        if not isinstance(skill, str):
            continue
        cleaned = skill.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def parse_skills_field(raw: Any) -> list[str]:
    """Parse a free-form skills form field.

    Accepts a list, a JSON array string or a comma-separated string. Original
    casing is kept here; normalize_skills does the case folding.
    """
    if not raw:
        return []

    if isinstance(raw, (list, tuple)):
        items = [str(item or "").strip() for item in raw]
        return list(dict.fromkeys(item for item in items if item))

    text = str(raw).strip()
    if not text:
        return []

    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            logger.debug("Skills field is not valid JSON, treating as comma list")
        else:
            if isinstance(parsed, list):
                return parse_skills_field(parsed)

    return list(dict.fromkeys(part.strip() for part in text.split(",") if part.strip()))


def normalize_candidate_payload(parsed: ParsedResume | None, resume_url: str | None) -> CandidateCreate:
    """Build the normalized insert payload from extractor output."""
    if parsed is None:
        parsed = ParsedResume()

    return CandidateCreate(
        name=normalize_name(parsed.name),
        email=normalize_email(parsed.email),
        phone=normalize_phone(parsed.phone),
        skills=normalize_skills(parsed.skills),
        resume_url=resume_url or None,
    )
