"""Skill extraction using the taxonomy + rapidfuzz with evidence tracking.

Synonyms are matched on token boundaries, so ``c`` does not fire inside
``circle`` and ``java`` does not fire inside ``javascript``. Fuzzy matching
over canonical names is optional and off by default.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from rapidfuzz import fuzz, process

from be.config import settings
from config.skill_taxonomy import SKILL_TAXONOMY

logger = logging.getLogger(__name__)

# Characters that are part of a skill token (c++, c#, node.js)
_TOKEN_CHARS = "a-z0-9+#."


@dataclass
class ExtractedSkill:
    """Represents an extracted skill with evidence."""
    canonical_skill: str
    raw_text: str
    confidence: float
    evidence_text: str = ""
    span_start: int = -1
    span_end: int = -1
    method: str = "exact"  # exact, fuzzy


@dataclass
class SkillTaxonomy:
    """Skill taxonomy with synonyms."""
    canonical_skill: str
    synonyms: list[str] = field(default_factory=list)
    category: str = ""


def build_term_pattern(term: str) -> re.Pattern:
    """Regex matching ``term`` only when not glued to other token characters."""
    return re.compile(
        rf"(^|[^{_TOKEN_CHARS}]){re.escape(term.lower())}($|[^{_TOKEN_CHARS}])",
        re.IGNORECASE,
    )


def load_default_taxonomy() -> list[SkillTaxonomy]:
    return [
        SkillTaxonomy(
            canonical_skill=entry["canonical_skill"],
            synonyms=list(entry.get("synonyms", [])),
            category=entry.get("category", ""),
        )
        for entry in SKILL_TAXONOMY
    ]


class SkillExtractor:
    """Taxonomy-driven skill extractor with synonym and optional fuzzy matching."""

    def __init__(self, taxonomy: list[SkillTaxonomy] | None = None) -> None:
        self.taxonomy = taxonomy or load_default_taxonomy()

        self._canonical_skills: list[str] = []
        self._synonym_patterns: list[tuple[str, str, re.Pattern]] = []  # (synonym, canonical, pattern)

        self._build_indices()

        logger.debug(f"Loaded {len(self.taxonomy)} skills with {len(self._synonym_patterns)} synonyms")

    def _build_indices(self) -> None:
        for tax in self.taxonomy:
            canonical = tax.canonical_skill
            self._canonical_skills.append(canonical)
            for syn in tax.synonyms or [canonical]:
                self._synonym_patterns.append((syn.lower(), canonical, build_term_pattern(syn)))

    def extract(
        self,
        text: str,
        *,
        fuzzy: bool | None = None,
        max_results: int | None = None,
    ) -> list[ExtractedSkill]:
        """Extract skills from text with evidence, in taxonomy order."""
        if not text or not text.strip():
            return []

        use_fuzzy = settings.skills.fuzzy_matching if fuzzy is None else fuzzy
        max_res = max_results or settings.skills.max_skills_per_doc

        results: list[ExtractedSkill] = []
        seen_skills: set[str] = set()

        # 1. Synonym matching on token boundaries
        for synonym, canonical, pattern in self._synonym_patterns:
            if canonical in seen_skills:
                continue

            match = pattern.search(text)
            if match:
                span_start, span_end = match.span()
                evidence = text[max(0, span_start - 30):min(len(text), span_end + 30)]
                results.append(ExtractedSkill(
                    canonical_skill=canonical,
                    raw_text=synonym,
                    confidence=0.95,
                    evidence_text=evidence.strip(),
                    span_start=span_start,
                    span_end=span_end,
                ))
                seen_skills.add(canonical)

        # 2. Fuzzy matching on multi-character canonical skills
        if use_fuzzy:
            threshold = settings.skills.fuzzy_threshold
            candidates = [s for s in self._canonical_skills if s not in seen_skills and len(s) > 3]
            matches = process.extract(
                text.lower(),
                candidates,
                scorer=fuzz.partial_ratio,
                limit=max_res,
            )
            for canonical_skill, score, _ in matches:
                if score >= threshold:
                    results.append(ExtractedSkill(
                        canonical_skill=canonical_skill,
                        raw_text=canonical_skill,
                        confidence=score / 100.0,
                        method="fuzzy",
                    ))
                    seen_skills.add(canonical_skill)

        results = [r for r in results if r.confidence >= settings.skills.min_confidence]
        return results[:max_res]
