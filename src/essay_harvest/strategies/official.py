"""Institution-owned admissions pages listed in a hand-maintained table."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..config.policies import StrategyPolicy
from ..entities import SourceType
from ..web_mining import SafeFetcher
from .base import SelectorScrapeStrategy
from .heuristics import is_imperative, mentions_why_institution

OFFICIAL_URLS: Dict[str, str] = {
    "Stanford University": "https://admission.stanford.edu/apply/freshman/essays.html",
    "Yale University": "https://admissions.yale.edu/essays",
    "Massachusetts Institute of Technology": "https://mitadmissions.org/apply/firstyear/essays-activities-academics/",
    "University of Chicago": "https://collegeadmissions.uchicago.edu/apply/uchicago-supplemental-essay-questions",
    "Columbia University": "https://undergrad.admissions.columbia.edu/apply/first-year/columbia-questions",
    "Brown University": "https://admission.brown.edu/first-year/application-essays",
    "Dartmouth College": "https://admissions.dartmouth.edu/apply/first-year-applicants/supplemental-essays",
    "Duke University": "https://admissions.duke.edu/application-essays/",
    "Northwestern University": "https://admissions.northwestern.edu/apply/first-year/essay-prompts.html",
    "Rice University": "https://admission.rice.edu/apply/first-year-applicants/supplemental-essays",
}


class OfficialSiteStrategy(SelectorScrapeStrategy):
    name = "official"
    source_type = SourceType.OFFICIAL
    builtin_table = OFFICIAL_URLS
    selectors = (
        ".essay-prompts",
        ".essay-prompt",
        "[class*='essay']",
        "[id*='essay']",
        "[class*='prompt']",
        "article",
        "main",
        ".content",
    )

    def __init__(self, fetcher: SafeFetcher, policy: StrategyPolicy | None = None) -> None:
        super().__init__(fetcher, policy)
        self.table = self._merged_table(self.policy.official_urls)

    @property
    def confidence(self) -> float:
        return self.policy.official_confidence

    def configured_institutions(self) -> List[str]:
        return list(self.table)

    def url_for(self, institution_name: str) -> Optional[str]:
        return self._lookup(self.table, institution_name)

    def is_prompt(self, text: str, institution_name: str) -> bool:
        return is_imperative(text) or mentions_why_institution(text, institution_name)


__all__ = ["OFFICIAL_URLS", "OfficialSiteStrategy"]
