"""Merge candidate lists reported by several sources for one institution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from ..entities import PromptCandidate, SourceResult
from ..utils.helpers import prefix_key


@dataclass(frozen=True)
class SourceCandidates:
    source: str
    candidates: Sequence[PromptCandidate]

    @classmethod
    def from_result(cls, result: SourceResult) -> "SourceCandidates":
        return cls(source=result.source_url, candidates=tuple(result.candidates))


class Reconciler:
    """Max-confidence reduction keyed on a lowercase text prefix.

    Near-duplicates whose leading text differs are kept apart; only an exact
    prefix match (after lowercasing and whitespace collapse) merges.
    """

    def __init__(self, key_length: int = 80) -> None:
        self.key_length = key_length

    def key(self, candidate: PromptCandidate) -> str:
        return prefix_key(candidate.prompt_text, self.key_length)

    def merge(self, results: Iterable[SourceCandidates]) -> List[PromptCandidate]:
        kept: Dict[str, PromptCandidate] = {}
        for result in results:
            for candidate in result.candidates:
                key = self.key(candidate)
                current = kept.get(key)
                # Strictly greater replaces; ties keep the first one seen.
                if current is None or _confidence(candidate) > _confidence(current):
                    kept[key] = candidate
        return list(kept.values())


def _confidence(candidate: PromptCandidate) -> float:
    return candidate.confidence_score if candidate.confidence_score is not None else 0.0


__all__ = ["Reconciler", "SourceCandidates"]
