"""Utility helpers for the harvester."""

from .helpers import normalize_whitespace, prefix_key, serialize_json, truncate_words, utc_now
from .logging import configure_logging, get_logger, logging_context
from .similarity import jaro_winkler

__all__ = [
    "configure_logging",
    "get_logger",
    "jaro_winkler",
    "logging_context",
    "normalize_whitespace",
    "prefix_key",
    "serialize_json",
    "truncate_words",
    "utc_now",
]
