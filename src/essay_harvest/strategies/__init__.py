"""Prompt source strategies."""

from .aggregator import AGGREGATOR_SLUGS, AggregatorStrategy
from .base import ScrapeStrategy, SelectorScrapeStrategy, candidate_from_payload, candidates_from_response
from .commonapp import KNOWN_PROMPTS, CommonAppStrategy
from .configured import ConfiguredSourceStrategy
from .official import OFFICIAL_URLS, OfficialSiteStrategy

__all__ = [
    "AGGREGATOR_SLUGS",
    "AggregatorStrategy",
    "CommonAppStrategy",
    "ConfiguredSourceStrategy",
    "KNOWN_PROMPTS",
    "OFFICIAL_URLS",
    "OfficialSiteStrategy",
    "ScrapeStrategy",
    "SelectorScrapeStrategy",
    "candidate_from_payload",
    "candidates_from_response",
]
