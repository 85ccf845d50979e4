"""Outbound fetching and HTML reduction."""

from .content import ContentPolicyError, extract_body_text, select_texts, text_blocks
from .fetcher import FetchError, SafeFetcher, SsrfBlocked, UpstreamError, resolve_host

__all__ = [
    "ContentPolicyError",
    "FetchError",
    "SafeFetcher",
    "SsrfBlocked",
    "UpstreamError",
    "extract_body_text",
    "resolve_host",
    "select_texts",
    "text_blocks",
]
