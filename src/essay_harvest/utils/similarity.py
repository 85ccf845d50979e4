"""Text similarity helpers for year-over-year prompt comparison."""

from __future__ import annotations

import re
from functools import lru_cache

import jellyfish

from .helpers import normalize_whitespace

_NON_WORD_RE = re.compile(r"[^\w\s]+", re.UNICODE)
_PREPROCESS_CACHE_SIZE = 2048


@lru_cache(maxsize=_PREPROCESS_CACHE_SIZE)
def preprocess_for_similarity(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""

    if not text:
        return ""
    lowered = normalize_whitespace(text).lower()
    return " ".join(_NON_WORD_RE.sub(" ", lowered).split())


def jaro_winkler(text1: str, text2: str) -> float:
    """Jaro-Winkler similarity of the preprocessed strings in ``[0, 1]``."""

    left = preprocess_for_similarity(text1)
    right = preprocess_for_similarity(text2)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return float(jellyfish.jaro_winkler_similarity(left, right))


__all__ = ["jaro_winkler", "preprocess_for_similarity"]
