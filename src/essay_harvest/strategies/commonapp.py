"""Common Application prompts, shared by every member institution."""

from __future__ import annotations

from typing import List, Optional

from ..config.policies import StrategyPolicy
from ..entities import PromptCandidate, PromptCategory, SourceResult, SourceType
from ..llm import LLMRunner
from ..web_mining import SafeFetcher, extract_body_text
from .base import ScrapeStrategy, candidates_from_response

KNOWN_PROMPTS: tuple[str, ...] = (
    "Some students have a background, identity, interest, or talent that is so meaningful they believe "
    "their application would be incomplete without it. If this sounds like you, then please share your story.",
    "The lessons we take from obstacles we encounter can be fundamental to later success. Recount a time "
    "when you faced a challenge, setback, or failure. How did it affect you, and what did you learn from "
    "the experience?",
    "Reflect on a time when you questioned or challenged a belief or idea. What prompted your thinking? "
    "What was the outcome?",
    "Reflect on something that someone has done for you that has made you happy or thankful in a "
    "surprising way. How has this gratitude affected or motivated you?",
    "Discuss an accomplishment, event, or realization that sparked a period of personal growth and a new "
    "understanding of yourself or others.",
    "Describe a topic, idea, or concept you find so engaging that it makes you lose all track of time. "
    "Why does it captivate you? What or who do you turn to when you want to learn more?",
    "Share an essay on any topic of your choice. It can be one you've already written, one that responds "
    "to a different prompt, or one of your own design.",
)
KNOWN_WORD_LIMIT = 650


class CommonAppStrategy(ScrapeStrategy):
    """Extract the personal-essay options, falling back to the known list.

    The institution argument is ignored. Any failure (no model configured,
    fetch error, malformed or empty extraction) yields the built-in prompts so
    this source never comes back empty.
    """

    name = "commonapp"
    source_type = SourceType.COMMON_APP

    def __init__(
        self,
        fetcher: SafeFetcher,
        policy: StrategyPolicy | None = None,
        runner: LLMRunner | None = None,
    ) -> None:
        super().__init__(fetcher, policy)
        self.runner = runner

    async def scrape(self, institution_name: str, year: int) -> Optional[SourceResult]:
        url = self.policy.commonapp_url
        if self.runner is None:
            self._logger.info("No LLM configured; using known Common App prompts", year=year)
            return self._result(institution_name, year, self.known_prompts(), url)
        try:
            html = await self.fetcher.fetch(url)
            content = extract_body_text(html, max_length=self.policy.max_content_length)
            response = await self.runner("essay.commonapp", {"year": year, "content": content})
            candidates = candidates_from_response(
                response,
                policy=self.policy,
                force_category=PromptCategory.COMMON_APP,
            )
        except Exception as exc:
            self._logger.warning("Common App extraction failed; using known prompts", error=str(exc))
            return self._result(institution_name, year, self.known_prompts(), url)
        if not candidates:
            self._logger.warning("Common App extraction returned nothing; using known prompts")
            return self._result(institution_name, year, self.known_prompts(), url)
        return self._result(institution_name, year, candidates, url, content)

    def known_prompts(self) -> List[PromptCandidate]:
        return [
            PromptCandidate(
                prompt_text=text,
                word_limit=KNOWN_WORD_LIMIT,
                category=PromptCategory.COMMON_APP,
                is_required=True,
                confidence_score=self.policy.commonapp_fallback_confidence,
            )
            for text in KNOWN_PROMPTS
        ]


__all__ = ["CommonAppStrategy", "KNOWN_PROMPTS"]
