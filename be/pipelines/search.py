"""Candidate search by skills.

A candidate matches when every search term appears, on token boundaries,
inside at least one of its skills (``java`` matches ``java`` and
``core java`` but not ``javascript``).
"""
from __future__ import annotations

import logging
from typing import Iterable

from ai.skills import build_term_pattern
from be.schemas import CandidateRecord
from be.store import CandidateStore

logger = logging.getLogger(__name__)


def parse_skills_param(raw: str | None) -> list[str]:
    if not raw or not isinstance(raw, str):
        return []
    return [skill.strip().lower() for skill in raw.split(",") if skill.strip()]


def skill_matches_term(skill: str | None, term: str | None) -> bool:
    if not skill or not term:
        return False

    normalized_skill = str(skill).strip().lower()
    if not normalized_skill:
        return False

    return build_term_pattern(term).search(normalized_skill) is not None


def candidate_has_all_terms(candidate: CandidateRecord, terms: Iterable[str]) -> bool:
    skills = [str(skill or "").lower() for skill in candidate.skills or []]
    if not skills:
        return False
    return all(any(skill_matches_term(skill, term) for skill in skills) for term in terms)


async def search_candidates(store: CandidateStore, terms: list[str]) -> list[CandidateRecord]:
    """Candidates matching every term, newest first.

    The store narrows by substring; the token-boundary match runs here.
    """
    candidates = await store.search_by_skills(terms)
    matches = [c for c in candidates if candidate_has_all_terms(c, terms)]
    matches.sort(key=lambda c: c.created_at, reverse=True)
    logger.debug(f"Skill search {terms} matched {len(matches)} of {len(candidates)} candidates")
    return matches
