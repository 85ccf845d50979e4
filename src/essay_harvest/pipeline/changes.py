"""Year-over-year prompt change classification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from ..utils.helpers import normalize_whitespace
from ..utils.similarity import jaro_winkler


class ChangeType(str, Enum):
    NEW = "NEW"
    MODIFIED = "MODIFIED"
    UNCHANGED = "UNCHANGED"
    REMOVED = "REMOVED"


@dataclass(frozen=True)
class PromptChange:
    prompt_text: str
    change_type: ChangeType
    previous_text: Optional[str] = None
    similarity: Optional[float] = None


class ChangeDetector:
    """Compare a cycle's prompts against the previous cycle's.

    Exact text (whitespace-normalised) is ``UNCHANGED``; the closest previous
    prompt at or above ``threshold`` Jaro-Winkler similarity makes it
    ``MODIFIED``; anything else is ``NEW``.
    """

    def __init__(self, threshold: float = 0.85) -> None:
        self.threshold = threshold

    def classify(self, prompt_text: str, previous: Sequence[str]) -> PromptChange:
        current = normalize_whitespace(prompt_text)
        normalised = [normalize_whitespace(text) for text in previous]
        if current in normalised:
            return PromptChange(prompt_text, ChangeType.UNCHANGED, previous_text=current, similarity=1.0)
        best_text: Optional[str] = None
        best_score = 0.0
        for candidate in normalised:
            score = jaro_winkler(current, candidate)
            if score > best_score:
                best_text, best_score = candidate, score
        if best_text is not None and best_score >= self.threshold:
            return PromptChange(prompt_text, ChangeType.MODIFIED, previous_text=best_text, similarity=best_score)
        return PromptChange(prompt_text, ChangeType.NEW)

    def compare(self, current: Sequence[str], previous: Sequence[str]) -> List[PromptChange]:
        changes = [self.classify(text, previous) for text in current]
        matched = {change.previous_text for change in changes if change.previous_text is not None}
        for text in previous:
            normalised = normalize_whitespace(text)
            if normalised not in matched:
                changes.append(PromptChange(normalised, ChangeType.REMOVED, previous_text=normalised))
        return changes


__all__ = ["ChangeDetector", "ChangeType", "PromptChange"]
