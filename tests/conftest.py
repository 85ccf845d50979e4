"""Shared fakes for the harvester test-suite."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pytest

from essay_harvest.entities import PromptCandidate, SourceResult, SourceType
from essay_harvest.llm import LLMResponse
from essay_harvest.storage import InMemoryPromptStore
from essay_harvest.strategies import ScrapeStrategy

PROMPT = "Describe a community you belong to and your place within it."


class FakeFetcher:
    """Serve canned HTML by URL; unknown URLs or exception values raise."""

    def __init__(self, pages: Mapping[str, Any] | None = None) -> None:
        self.pages: Dict[str, Any] = dict(pages or {})
        self.calls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise RuntimeError(f"unexpected fetch of {url}")
        if isinstance(page, BaseException):
            raise page
        return page


class StubRunner:
    """Async LLM runner answering per prompt key."""

    def __init__(self, handlers: Mapping[str, Callable[[Dict[str, Any]], Any]]) -> None:
        self.handlers = dict(handlers)
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    async def __call__(self, prompt_key: str, variables: Dict[str, Any]) -> LLMResponse:
        self.calls.append((prompt_key, dict(variables)))
        result = self.handlers[prompt_key](variables)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, LLMResponse):
            return result
        return LLMResponse(ok=True, content=result)


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture()
def store() -> InMemoryPromptStore:
    return InMemoryPromptStore()


class CannedStrategy(ScrapeStrategy):
    """Return fixed candidates per institution; ``None`` entries mean no result."""

    def __init__(
        self,
        name: str,
        source_type: SourceType,
        table: Dict[str, Optional[List[Tuple[str, float]]]],
        *,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.source_type = source_type
        super().__init__(FakeFetcher())
        self.table = table
        self.error = error
        self.calls: List[str] = []

    def configured_institutions(self) -> List[str]:
        return list(self.table)

    async def scrape(self, institution_name: str, year: int) -> Optional[SourceResult]:
        self.calls.append(institution_name)
        if self.error is not None:
            raise self.error
        rows = self.table.get(institution_name)
        if rows is None:
            return None
        candidates = [PromptCandidate(prompt_text=text, confidence_score=score) for text, score in rows]
        return self._result(
            institution_name,
            year,
            candidates,
            f"https://{self.name}.example.edu/{institution_name.lower().replace(' ', '-')}",
            "raw page text",
        )
