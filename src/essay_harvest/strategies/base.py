"""Common contract shared by every prompt source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..config.policies import StrategyPolicy
from ..entities import PromptCandidate, PromptCategory, SourceResult, SourceType
from ..llm import LLMError, LLMResponse
from ..utils.helpers import normalize_whitespace, prefix_key
from ..utils.logging import get_logger
from ..web_mining import SafeFetcher, select_texts, text_blocks
from .heuristics import collect_candidates


class ScrapeStrategy(ABC):
    """One kind of prompt source.

    ``scrape`` returns ``None`` when the strategy has nothing configured for
    the institution or extraction yields no candidates. Fetch failures may
    propagate; the acquisition service treats them as "no result".
    """

    source_type: SourceType
    name: str = "strategy"

    def __init__(self, fetcher: SafeFetcher, policy: StrategyPolicy | None = None) -> None:
        self.fetcher = fetcher
        self.policy = policy or StrategyPolicy()
        self._logger = get_logger(component="strategy", strategy=self.name)

    @abstractmethod
    async def scrape(self, institution_name: str, year: int) -> Optional[SourceResult]:
        ...

    def configured_institutions(self) -> List[str]:
        """Institutions this strategy knows how to scrape."""

        return []

    def _result(
        self,
        institution_name: str,
        year: int,
        candidates: Sequence[PromptCandidate],
        source_url: str,
        raw_snippet: str | None = None,
    ) -> SourceResult:
        snippet = raw_snippet[: self.policy.raw_snippet_length] if raw_snippet else None
        return SourceResult(
            institution_name=institution_name,
            application_year=year,
            candidates=list(candidates),
            source_url=source_url,
            source_type=self.source_type,
            raw_snippet=snippet,
        )


class SelectorScrapeStrategy(ScrapeStrategy):
    """Table lookup, fetch, selector cascade and regex filtering."""

    selectors: Sequence[str] = ()
    builtin_table: Mapping[str, str] = {}

    @property
    @abstractmethod
    def confidence(self) -> float:
        ...

    @abstractmethod
    def url_for(self, institution_name: str) -> Optional[str]:
        ...

    @abstractmethod
    def is_prompt(self, text: str, institution_name: str) -> bool:
        ...

    async def scrape(self, institution_name: str, year: int) -> Optional[SourceResult]:
        url = self.url_for(institution_name)
        if url is None:
            self._logger.debug("No source configured", institution=institution_name)
            return None
        html = await self.fetcher.fetch(url)
        blocks = select_texts(html, self.selectors) or text_blocks(html)
        candidates = collect_candidates(
            blocks,
            institution_name=institution_name,
            confidence=self.confidence,
            predicate=lambda text: self.is_prompt(text, institution_name),
            min_length=self.policy.min_prompt_length,
            max_length=self.policy.max_prompt_length,
            dedup_length=self.policy.prefix_dedup_length,
            limit=self.policy.max_candidates,
        )
        if not candidates:
            self._logger.info("No prompts matched", institution=institution_name, url=url)
            return None
        return self._result(institution_name, year, candidates, url, "\n".join(blocks))

    def _lookup(self, table: Mapping[str, str], institution_name: str) -> Optional[str]:
        wanted = institution_name.strip().lower()
        for key, value in table.items():
            if key.lower() == wanted:
                return value
        return None

    def _merged_table(self, overrides: Mapping[str, str]) -> Dict[str, str]:
        merged = {key.lower(): (key, value) for key, value in self.builtin_table.items()}
        merged.update({key.lower(): (key, value) for key, value in overrides.items()})
        return dict(merged.values())


def candidates_from_response(
    response: LLMResponse,
    *,
    policy: StrategyPolicy,
    default_category: PromptCategory = PromptCategory.SUPPLEMENT,
    force_category: PromptCategory | None = None,
) -> List[PromptCandidate]:
    """Turn a validated extraction payload into candidates.

    Raises :class:`LLMError` when the call did not succeed so callers can
    apply their own fallback.
    """

    if not response.ok:
        raise LLMError(response.error or "Extraction call failed")
    items: List[Mapping[str, Any]] = list((response.content or {}).get("prompts") or [])
    seen: set[str] = set()
    candidates: List[PromptCandidate] = []
    for item in items:
        candidate = candidate_from_payload(
            item,
            policy=policy,
            default_category=default_category,
            force_category=force_category,
        )
        if candidate is None:
            continue
        key = prefix_key(candidate.prompt_text, policy.prefix_dedup_length)
        if key in seen:
            continue
        seen.add(key)
        candidates.append(candidate)
        if len(candidates) >= policy.max_candidates:
            break
    return candidates


def candidate_from_payload(
    item: Mapping[str, Any],
    *,
    policy: StrategyPolicy,
    default_category: PromptCategory = PromptCategory.SUPPLEMENT,
    force_category: PromptCategory | None = None,
) -> Optional[PromptCandidate]:
    text = normalize_whitespace(str(item.get("prompt_text") or ""))
    # Fragments this short are headings or labels rather than prompts.
    if len(text) <= policy.min_prompt_length:
        return None
    word_limit = item.get("word_limit")
    if not isinstance(word_limit, int) or isinstance(word_limit, bool) or word_limit < 1:
        word_limit = None
    confidence = item.get("confidence")
    if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
        confidence = policy.llm_default_confidence
    category = force_category or PromptCategory.coerce(item.get("category"), default_category)
    return PromptCandidate(
        prompt_text=text[: policy.max_prompt_length],
        word_limit=word_limit,
        category=category,
        is_required=bool(item.get("is_required", True)),
        confidence_score=min(1.0, max(0.0, float(confidence))),
    )


__all__ = [
    "ScrapeStrategy",
    "SelectorScrapeStrategy",
    "candidate_from_payload",
    "candidates_from_response",
]
