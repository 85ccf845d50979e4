"""Third-party essay-prompt catalogue (CollegeVine school pages)."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..config.policies import StrategyPolicy
from ..entities import SourceType
from ..web_mining import SafeFetcher
from .base import SelectorScrapeStrategy
from .heuristics import is_imperative

AGGREGATOR_SLUGS: Dict[str, str] = {
    "Harvard University": "harvard-university",
    "Stanford University": "stanford-university",
    "Yale University": "yale-university",
    "Princeton University": "princeton-university",
    "Massachusetts Institute of Technology": "massachusetts-institute-of-technology",
    "University of Chicago": "university-of-chicago",
    "Columbia University": "columbia-university",
    "University of Pennsylvania": "university-of-pennsylvania",
    "Brown University": "brown-university",
    "Cornell University": "cornell-university",
    "Duke University": "duke-university",
    "Northwestern University": "northwestern-university",
}


class AggregatorStrategy(SelectorScrapeStrategy):
    name = "aggregator"
    source_type = SourceType.AGGREGATOR
    builtin_table = AGGREGATOR_SLUGS
    selectors = (
        ".essay-prompt",
        "[class*='prompt']",
        "[data-testid*='prompt']",
        "blockquote",
        "article",
        "main",
    )

    def __init__(self, fetcher: SafeFetcher, policy: StrategyPolicy | None = None) -> None:
        super().__init__(fetcher, policy)
        self.slugs = self._merged_table(self.policy.aggregator_slugs)

    @property
    def confidence(self) -> float:
        return self.policy.aggregator_confidence

    def configured_institutions(self) -> List[str]:
        return list(self.slugs)

    def url_for(self, institution_name: str) -> Optional[str]:
        slug = self._lookup(self.slugs, institution_name)
        if slug is None:
            return None
        return f"{self.policy.aggregator_base_url.rstrip('/')}/{slug}/essays"

    def is_prompt(self, text: str, institution_name: str) -> bool:
        return "?" in text or is_imperative(text)


__all__ = ["AGGREGATOR_SLUGS", "AggregatorStrategy"]
