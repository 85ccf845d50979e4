"""Tests for HTML reduction, heuristics and the source strategies."""

from __future__ import annotations

import asyncio

import pytest

from essay_harvest.config.policies import StrategyPolicy
from essay_harvest.entities import (
    ExtractionHints,
    Institution,
    PromptCategory,
    SourceConfig,
    SourceRunStatus,
    SourceType,
)
from essay_harvest.llm import LLMResponse
from essay_harvest.strategies import (
    KNOWN_PROMPTS,
    AggregatorStrategy,
    CommonAppStrategy,
    ConfiguredSourceStrategy,
    OfficialSiteStrategy,
)
from essay_harvest.strategies.base import candidates_from_response
from essay_harvest.strategies.heuristics import (
    infer_category,
    is_imperative,
    mentions_why_institution,
    parse_word_limit,
)
from essay_harvest.web_mining import ContentPolicyError, UpstreamError, extract_body_text, select_texts

from conftest import FakeFetcher, StubRunner

STANFORD_URL = "https://admission.stanford.edu/apply/freshman/essays.html"

STANFORD_HTML = """
<html>
  <body>
    <nav><p>Describe the navigation menu that must never become a prompt.</p></nav>
    <main>
      <div class="essay-prompts">
        <p>Describe an intellectual experience that mattered to you. (250 words)</p>
        <p>Why Stanford University? Tell us what excites you about our community.</p>
        <p>Apply now</p>
        <p>Describe an intellectual experience that mattered to you, in detail.</p>
      </div>
    </main>
    <footer><p>Copyright notice for the admissions office website.</p></footer>
  </body>
</html>
"""


def test_extract_body_text_strips_boilerplate_and_prefers_selectors() -> None:
    html = """
    <html><body>
      <header>Site header</header>
      <script>var tracking = true;</script>
      <main>
        <div class="cookie-banner">We use cookies</div>
        <section class="prompts"><p>Reflect on a challenge.</p></section>
        <p>Unrelated body copy</p>
      </main>
    </body></html>
    """

    focused = extract_body_text(html, css_selectors=[".prompts"])
    full = extract_body_text(html, max_length=12)

    assert focused == "Reflect on a challenge."
    assert "tracking" not in full and "cookies" not in full
    assert len(full) == 12


def test_extract_body_text_rejects_empty_pages() -> None:
    with pytest.raises(ContentPolicyError):
        extract_body_text("<html><body><script>x()</script></body></html>")


def test_invalid_selector_is_ignored() -> None:
    blocks = select_texts("<main><p>Share your story with us today.</p></main>", ["[[broken", "main"])

    assert blocks == ["Share your story with us today."]


def test_heuristics() -> None:
    assert is_imperative("Please describe a community you belong to.")
    assert not is_imperative("The committee reads every essay.")
    assert parse_word_limit("Respond in 650-word essay form") == 650
    assert parse_word_limit("Maximum of 5 words") is None
    assert infer_category("Why Duke University?", "Duke University") is PromptCategory.WHY_US
    assert infer_category("Describe an extracurricular activity.", "Duke University") is PromptCategory.ACTIVITY
    assert infer_category("Describe a hobby.", "Duke University", 100) is PromptCategory.SHORT_ANSWER


def test_official_strategy_matches_imperatives_and_why_questions() -> None:
    fetcher = FakeFetcher({STANFORD_URL: STANFORD_HTML})
    strategy = OfficialSiteStrategy(fetcher)

    result = asyncio.run(strategy.scrape("stanford university", 2026))

    assert result is not None
    assert result.source_type is SourceType.OFFICIAL
    assert result.source_url == STANFORD_URL
    texts = [candidate.prompt_text for candidate in result.candidates]
    assert texts == [
        "Describe an intellectual experience that mattered to you. (250 words)",
        "Why Stanford University? Tell us what excites you about our community.",
    ]
    first, second = result.candidates
    assert first.word_limit == 250
    assert first.confidence_score == pytest.approx(0.85)
    assert second.category is PromptCategory.WHY_US
    assert "navigation menu" not in (result.raw_snippet or "")


SHARED_PREFIX = "Describe a time you changed your mind about something"
MARKETING = "Learn why thousands of students choose our university each and every year."


def _crowded_prompts() -> list[str]:
    distinct = [f"Describe experience number {index} that shaped the person you are today." for index in range(15)]
    return [f"{SHARED_PREFIX} that mattered to you.", f"{SHARED_PREFIX} in your community.", *distinct]


def test_official_strategy_dedups_on_prefix_and_caps_candidates() -> None:
    paragraphs = "".join(f"<p>{text}</p>" for text in [MARKETING, *_crowded_prompts()])
    fetcher = FakeFetcher({STANFORD_URL: f"<html><body><main>{paragraphs}</main></body></html>"})

    result = asyncio.run(OfficialSiteStrategy(fetcher).scrape("Stanford University", 2026))

    assert result is not None
    texts = [candidate.prompt_text for candidate in result.candidates]
    assert len(texts) == 10
    assert [text for text in texts if text.startswith(SHARED_PREFIX)] == [f"{SHARED_PREFIX} that mattered to you."]
    assert MARKETING not in texts


def test_generic_why_pattern_requires_a_question() -> None:
    assert not mentions_why_institution(MARKETING, "Stanford University")
    assert mentions_why_institution("Why would you thrive at a small liberal arts college?", "Stanford University")


def test_extraction_payload_dedups_on_prefix_and_caps_candidates() -> None:
    payload = {"prompts": [{"prompt_text": text, "word_limit": 250} for text in _crowded_prompts()]}

    candidates = candidates_from_response(LLMResponse(ok=True, content=payload), policy=StrategyPolicy())

    texts = [candidate.prompt_text for candidate in candidates]
    assert len(texts) == 10
    assert sum(text.startswith(SHARED_PREFIX) for text in texts) == 1
    assert texts[1] == "Describe experience number 0 that shaped the person you are today."


def test_official_strategy_skips_unknown_institution_without_fetching() -> None:
    fetcher = FakeFetcher()

    result = asyncio.run(OfficialSiteStrategy(fetcher).scrape("Nowhere College", 2026))

    assert result is None
    assert fetcher.calls == []


def test_official_strategy_propagates_fetch_errors() -> None:
    fetcher = FakeFetcher({STANFORD_URL: UpstreamError("HTTP 503", url=STANFORD_URL, status_code=503)})

    with pytest.raises(UpstreamError):
        asyncio.run(OfficialSiteStrategy(fetcher).scrape("Stanford University", 2026))


def test_policy_tables_extend_builtin_urls() -> None:
    policy = StrategyPolicy(
        official_urls={"Example University": "https://example.edu/essays"},
        aggregator_slugs={"Example University": "example-university"},
    )

    official = OfficialSiteStrategy(FakeFetcher(), policy)
    aggregator = AggregatorStrategy(FakeFetcher(), policy)

    assert official.url_for("Example University") == "https://example.edu/essays"
    assert "Stanford University" in official.configured_institutions()
    assert aggregator.url_for("example university") == "https://www.collegevine.com/schools/example-university/essays"


def test_aggregator_accepts_questions() -> None:
    url = "https://www.collegevine.com/schools/duke-university/essays"
    html = """
    <main>
      <blockquote>What is your sense of Duke as a university and a community?</blockquote>
      <blockquote>Duke's commitment to community is well known.</blockquote>
    </main>
    """
    result = asyncio.run(AggregatorStrategy(FakeFetcher({url: html})).scrape("Duke University", 2026))

    assert result is not None
    assert [candidate.prompt_text for candidate in result.candidates] == [
        "What is your sense of Duke as a university and a community?"
    ]
    assert result.candidates[0].confidence_score == pytest.approx(0.7)
    assert result.source_type is SourceType.AGGREGATOR


def test_commonapp_without_llm_returns_known_prompts_without_fetching() -> None:
    fetcher = FakeFetcher()

    result = asyncio.run(CommonAppStrategy(fetcher).scrape("Common App", 2026))

    assert result is not None
    assert fetcher.calls == []
    assert [candidate.prompt_text for candidate in result.candidates] == list(KNOWN_PROMPTS)
    assert all(candidate.word_limit == 650 for candidate in result.candidates)
    assert all(candidate.category is PromptCategory.COMMON_APP for candidate in result.candidates)
    assert all(candidate.confidence_score == pytest.approx(0.9) for candidate in result.candidates)


def test_commonapp_falls_back_when_extraction_fails() -> None:
    policy = StrategyPolicy()
    fetcher = FakeFetcher({policy.commonapp_url: "<main><p>Essay prompts</p></main>"})
    runner = StubRunner({"essay.commonapp": lambda _vars: LLMResponse(ok=False, error="timeout")})

    result = asyncio.run(CommonAppStrategy(fetcher, policy, runner).scrape("Common App", 2026))

    assert result is not None
    assert len(result.candidates) == len(KNOWN_PROMPTS)


def test_commonapp_uses_extracted_prompts_when_available() -> None:
    policy = StrategyPolicy()
    fetcher = FakeFetcher({policy.commonapp_url: "<main><p>2026-2027 Common App essay prompts</p></main>"})
    runner = StubRunner(
        {
            "essay.commonapp": lambda _vars: {
                "prompts": [
                    {"prompt_text": "Share a story that only you could tell about yourself.", "word_limit": 650},
                    {"prompt_text": "Too short"},
                ]
            }
        }
    )

    result = asyncio.run(CommonAppStrategy(fetcher, policy, runner).scrape("Common App", 2026))

    assert result is not None
    assert [candidate.prompt_text for candidate in result.candidates] == [
        "Share a story that only you could tell about yourself."
    ]
    assert result.candidates[0].category is PromptCategory.COMMON_APP
    assert result.candidates[0].confidence_score == pytest.approx(0.8)
    assert runner.calls[0][1]["year"] == 2026


def _configured(store, runner, pages):
    institution = store.add_institution(Institution(name="Example University", aliases=["EU"]))
    broken = store.save_source_config(
        SourceConfig(institution_id=institution.id, url="https://broken.example.edu/essays", priority=10)
    )
    empty = store.save_source_config(
        SourceConfig(institution_id=institution.id, url="https://empty.example.edu/essays", priority=5)
    )
    good = store.save_source_config(
        SourceConfig(
            institution_id=institution.id,
            url="https://example.edu/essays",
            priority=1,
            extraction_hints=ExtractionHints(css_selectors=[".prompts"], llm_hint="Supplements only"),
        )
    )
    strategy = ConfiguredSourceStrategy(FakeFetcher(pages), store, StrategyPolicy(), runner)
    return strategy, broken, empty, good


def test_configured_strategy_tries_configs_by_priority_and_stamps_them(store) -> None:
    def extract(variables):
        if "Nothing here" in variables["content"]:
            return {"prompts": []}
        return {
            "prompts": [
                {
                    "prompt_text": "Why Example University? Describe what draws you here.",
                    "word_limit": 200,
                    "category": "WHY_US",
                    "confidence": 0.9,
                }
            ]
        }

    runner = StubRunner({"essay.extract": extract})
    pages = {
        "https://broken.example.edu/essays": UpstreamError("HTTP 500", url="https://broken.example.edu/essays", status_code=500),
        "https://empty.example.edu/essays": "<main><p>Nothing here</p></main>",
        "https://example.edu/essays": "<main><div class='prompts'><p>Essays</p></div><p>Other</p></main>",
    }
    strategy, broken, empty, good = _configured(store, runner, pages)

    result = asyncio.run(strategy.scrape("EU", 2026))

    assert result is not None
    assert result.source_type is SourceType.CONFIGURED
    assert result.source_url == "https://example.edu/essays"
    assert result.candidates[0].category is PromptCategory.WHY_US
    assert runner.calls[-1][1]["hint"] == "Supplements only"
    assert runner.calls[-1][1]["content"] == "Essays"

    broken_after = store.get_source_config(broken.id)
    empty_after = store.get_source_config(empty.id)
    good_after = store.get_source_config(good.id)
    assert broken_after.last_run_status is SourceRunStatus.FAILED
    assert "HTTP 500" in broken_after.last_run_error
    assert empty_after.last_run_status is SourceRunStatus.FAILED
    assert empty_after.last_run_error == "No prompts extracted"
    assert good_after.last_run_status is SourceRunStatus.SUCCESS
    assert good_after.last_run_error is None
    assert good_after.last_run_at is not None


def test_configured_strategy_is_inert_without_llm(store) -> None:
    strategy, *_ = _configured(store, None, {})

    assert asyncio.run(strategy.scrape("Example University", 2026)) is None
    assert strategy.configured_institutions() == ["Example University"]
