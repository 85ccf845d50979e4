"""General-purpose helpers shared across the harvester."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path

from .logging import get_logger

_WHITESPACE_PATTERN = re.compile(r"\s+")

_LOGGER = get_logger(module=__name__)


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace into single spaces."""

    return _WHITESPACE_PATTERN.sub(" ", text or "").strip()


def prefix_key(text: str, length: int) -> str:
    """Lowercased, whitespace-collapsed prefix used as a dedup key."""

    return normalize_whitespace(text).lower()[:length]


def truncate_words(text: str, max_words: int) -> str:
    words = normalize_whitespace(text).split(" ")
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def serialize_json(data: object, destination: Path | str, *, indent: int = 2) -> Path:
    """Write JSON atomically with deterministic key ordering."""

    dest_path = Path(destination)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    staging = dest_path.with_suffix(dest_path.suffix + ".tmp")
    staging.write_text(
        json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    staging.replace(dest_path)
    _LOGGER.debug("Serialized JSON", path=str(dest_path), size=dest_path.stat().st_size)
    return dest_path


__all__ = [
    "normalize_whitespace",
    "prefix_key",
    "serialize_json",
    "truncate_words",
    "utc_now",
]
