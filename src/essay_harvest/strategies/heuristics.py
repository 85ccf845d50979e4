"""Regular-expression heuristics for recognising essay-prompt phrasing."""

from __future__ import annotations

import re
from typing import Callable, Iterable, List

from ..entities import PromptCandidate, PromptCategory
from ..utils.helpers import normalize_whitespace, prefix_key

IMPERATIVE_RE = re.compile(
    r"^(?:please\s+)?(?:briefly\s+)?"
    r"(describe|tell|share|explain|reflect|discuss|recount|elaborate|consider|"
    r"identify|imagine|choose|select|write|think|submit|respond)\b",
    re.IGNORECASE,
)
# Generic "why ... university" only counts when phrased as a question.
WHY_INSTITUTION_RE = re.compile(
    r"\bwhy\b[^.!?]{0,80}\b(university|college|school|institute)\b[^.!?]*\?", re.IGNORECASE
)
WORD_LIMIT_RE = re.compile(
    r"(?:(\d{2,4})\s*(?:-|–)?\s*words?\b"
    r"|(?:limit|maximum|max|up to|no more than)\s*(?:of\s*)?(\d{2,4})\b)",
    re.IGNORECASE,
)
_SHORT_ANSWER_RE = re.compile(r"\bshort answer\b|\bin (?:a )?(?:few|one|two) (?:words|sentences?)\b", re.IGNORECASE)
_ACTIVITY_RE = re.compile(r"\b(extracurricular|activit(?:y|ies)|work experience)\b", re.IGNORECASE)
_OPTIONAL_RE = re.compile(r"\(?\boptional\b\)?", re.IGNORECASE)

Predicate = Callable[[str], bool]


def why_institution_pattern(institution_name: str) -> re.Pattern[str]:
    """``why <institution>`` allowing for a leading "the" and partial names."""

    words = [re.escape(word) for word in institution_name.split() if len(word) > 2]
    if not words:
        return re.compile(r"(?!x)x")
    name = r"(?:the\s+)?" + r"\s+".join(words[:2])
    return re.compile(rf"\bwhy\b.{{0,60}}\b{name}", re.IGNORECASE)


def is_imperative(text: str) -> bool:
    return bool(IMPERATIVE_RE.match(text.strip()))


def mentions_why_institution(text: str, institution_name: str) -> bool:
    return bool(why_institution_pattern(institution_name).search(text) or WHY_INSTITUTION_RE.search(text))


def parse_word_limit(text: str) -> int | None:
    """First plausible word limit mentioned in ``text`` ("250 words", "650-word")."""

    for match in WORD_LIMIT_RE.finditer(text):
        raw = match.group(1) or match.group(2)
        value = int(raw)
        if 25 <= value <= 2000:
            return value
    return None


def infer_category(text: str, institution_name: str, word_limit: int | None = None) -> PromptCategory:
    if mentions_why_institution(text, institution_name):
        return PromptCategory.WHY_US
    if _ACTIVITY_RE.search(text):
        return PromptCategory.ACTIVITY
    if _OPTIONAL_RE.search(text):
        return PromptCategory.OPTIONAL
    if _SHORT_ANSWER_RE.search(text) or (word_limit is not None and word_limit <= 150):
        return PromptCategory.SHORT_ANSWER
    return PromptCategory.SUPPLEMENT


def collect_candidates(
    blocks: Iterable[str],
    *,
    institution_name: str,
    confidence: float,
    predicate: Predicate,
    min_length: int,
    max_length: int,
    dedup_length: int = 50,
    limit: int = 10,
) -> List[PromptCandidate]:
    """Filter text blocks into candidates.

    Blocks outside ``[min_length, max_length]`` or rejected by ``predicate``
    are skipped. Candidates are deduplicated on a lowercase prefix key and
    the list is capped at ``limit``.
    """

    seen: set[str] = set()
    candidates: List[PromptCandidate] = []
    for block in blocks:
        text = normalize_whitespace(block)
        if not (min_length <= len(text) <= max_length) or not predicate(text):
            continue
        key = prefix_key(text, dedup_length)
        if key in seen:
            continue
        seen.add(key)
        word_limit = parse_word_limit(text)
        candidates.append(
            PromptCandidate(
                prompt_text=text,
                word_limit=word_limit,
                category=infer_category(text, institution_name, word_limit),
                is_required=not _OPTIONAL_RE.search(text),
                confidence_score=confidence,
            )
        )
        if len(candidates) >= limit:
            break
    return candidates


__all__ = [
    "IMPERATIVE_RE",
    "collect_candidates",
    "infer_category",
    "is_imperative",
    "mentions_why_institution",
    "parse_word_limit",
    "why_institution_pattern",
]
