"""Admin-configured pages read through LLM extraction."""

from __future__ import annotations

from typing import List, Optional

from ..config.policies import StrategyPolicy
from ..entities import ExtractionHints, PromptCategory, SourceConfig, SourceResult, SourceRunStatus, SourceType
from ..llm import LLMRunner
from ..storage import PromptStore
from ..utils.helpers import utc_now
from ..web_mining import SafeFetcher, extract_body_text
from .base import ScrapeStrategy, candidates_from_response


class ConfiguredSourceStrategy(ScrapeStrategy):
    """Try each active :class:`SourceConfig` for an institution by priority.

    The first config yielding at least one candidate wins and is stamped
    ``SUCCESS``; configs that raise or yield nothing are stamped ``FAILED``
    with the reason. Without an LLM runner the strategy is inert.
    """

    name = "configured"
    source_type = SourceType.CONFIGURED

    def __init__(
        self,
        fetcher: SafeFetcher,
        store: PromptStore,
        policy: StrategyPolicy | None = None,
        runner: LLMRunner | None = None,
    ) -> None:
        super().__init__(fetcher, policy)
        self.store = store
        self.runner = runner

    def configured_institutions(self) -> List[str]:
        names: List[str] = []
        for config in self.store.list_source_configs(active_only=True):
            institution = self.store.get_institution(config.institution_id)
            if institution is not None and institution.name not in names:
                names.append(institution.name)
        return names

    async def scrape(self, institution_name: str, year: int) -> Optional[SourceResult]:
        if self.runner is None:
            self._logger.debug("LLM unavailable; configured sources skipped", institution=institution_name)
            return None
        institution = self.store.find_institution(institution_name)
        if institution is None:
            return None
        configs = self.store.list_source_configs(institution_id=institution.id, active_only=True)
        if not configs:
            self._logger.debug("No source configured", institution=institution_name)
            return None

        for config in configs:
            try:
                candidates, content = await self._extract(config, institution_name, year)
            except Exception as exc:
                self._logger.warning(
                    "Configured source failed",
                    institution=institution_name,
                    url=config.url,
                    error=str(exc),
                )
                self._stamp(config, SourceRunStatus.FAILED, str(exc) or type(exc).__name__)
                continue
            if candidates:
                self._stamp(config, SourceRunStatus.SUCCESS, None)
                return self._result(institution_name, year, candidates, config.url, content)
            self._stamp(config, SourceRunStatus.FAILED, "No prompts extracted")
        return None

    async def _extract(self, config: SourceConfig, institution_name: str, year: int):
        hints = config.extraction_hints or ExtractionHints()
        html = await self.fetcher.fetch(config.url)
        content = extract_body_text(
            html,
            remove_selectors=hints.remove_selectors,
            css_selectors=hints.css_selectors,
            max_length=hints.max_content_length or self.policy.max_content_length,
        )
        response = await self.runner(
            "essay.extract",
            {
                "institution": institution_name,
                "year": year,
                "hint": hints.llm_hint or "",
                "content": content,
                "categories": [category.value for category in PromptCategory],
            },
        )
        return candidates_from_response(response, policy=self.policy), content

    def _stamp(self, config: SourceConfig, status: SourceRunStatus, error: str | None) -> None:
        updated = config.model_copy(
            update={"last_run_at": utc_now(), "last_run_status": status, "last_run_error": error}
        )
        self.store.save_source_config(updated)


__all__ = ["ConfiguredSourceStrategy"]
