"""HTML cleaning and selector helpers built on BeautifulSoup."""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from ..errors import HarvestError
from ..utils.logging import get_logger

DEFAULT_REMOVE_SELECTORS: tuple[str, ...] = (
    "script",
    "style",
    "noscript",
    "nav",
    "footer",
    "header",
    '[role="navigation"]',
    ".cookie-banner",
    "#cookie-consent",
)
BODY_SELECTORS: tuple[str, ...] = ("main", "article", ".content", "body")
BLOCK_TAGS: tuple[str, ...] = ("p", "li", "h2", "h3", "h4", "blockquote", "dd", "td")

_BLANK_LINES_RE = re.compile(r"\n\s*\n+")
_SPACES_RE = re.compile(r"[ \t\r\f\v]+")

_LOGGER = get_logger(module=__name__)


class ContentPolicyError(HarvestError):
    """Raised when a page cannot be reduced to usable text."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message, reason=reason)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def strip_boilerplate(soup: BeautifulSoup, extra_selectors: Iterable[str] = ()) -> BeautifulSoup:
    """Remove navigation, script and cookie-banner nodes in place."""

    for selector in (*DEFAULT_REMOVE_SELECTORS, *extra_selectors):
        try:
            nodes = soup.select(selector)
        except (SelectorSyntaxError, ValueError):
            _LOGGER.warning("Ignoring invalid removal selector", selector=selector)
            continue
        for node in nodes:
            node.decompose()
    return soup


def clean_text(text: str) -> str:
    lines = [_SPACES_RE.sub(" ", line).strip() for line in (text or "").splitlines()]
    joined = "\n".join(line for line in lines if line)
    return _BLANK_LINES_RE.sub("\n", joined).strip()


def node_text(node: Tag) -> str:
    return clean_text(node.get_text(" ", strip=True))


def _safe_select(soup: BeautifulSoup | Tag, selector: str) -> List[Tag]:
    try:
        return list(soup.select(selector))
    except (SelectorSyntaxError, ValueError):
        _LOGGER.warning("Ignoring invalid CSS selector", selector=selector)
        return []


def extract_body_text(
    html: str,
    *,
    remove_selectors: Sequence[str] = (),
    css_selectors: Sequence[str] = (),
    max_length: int = 8000,
) -> str:
    """Reduce a page to readable text for the extraction prompt.

    When ``css_selectors`` match anything, only those regions are kept;
    otherwise the first matching body container is used. The result is
    truncated to ``max_length`` characters.
    """

    soup = strip_boilerplate(parse_html(html), remove_selectors)
    sections: List[str] = []
    for selector in css_selectors:
        sections.extend(node_text(node) for node in _safe_select(soup, selector))
    sections = [section for section in sections if section]
    if not sections:
        for selector in BODY_SELECTORS:
            matches = _safe_select(soup, selector)
            if matches:
                sections = [clean_text(matches[0].get_text("\n", strip=True))]
                break
    if not sections:
        sections = [clean_text(soup.get_text("\n", strip=True))]
    text = "\n\n".join(section for section in sections if section)
    if not text:
        raise ContentPolicyError("empty", "Page produced no readable text")
    return text[:max_length]


def select_texts(html: str, selectors: Sequence[str]) -> List[str]:
    """Selector cascade: text blocks under the first selector that matches.

    Block-level descendants (paragraphs, list items, headings) are returned
    individually so heuristics can judge each one; a matched container with
    no block children contributes its own text.
    """

    soup = strip_boilerplate(parse_html(html))
    for selector in selectors:
        containers = _safe_select(soup, selector)
        if not containers:
            continue
        blocks: List[str] = []
        for container in containers:
            children = container.find_all(list(BLOCK_TAGS))
            if children:
                blocks.extend(node_text(child) for child in children)
            else:
                blocks.append(node_text(container))
        blocks = [block for block in blocks if block]
        if blocks:
            return blocks
    return []


def text_blocks(html: str) -> List[str]:
    """All block-level texts of the page after boilerplate removal."""

    soup = strip_boilerplate(parse_html(html))
    return [text for text in (node_text(node) for node in soup.find_all(list(BLOCK_TAGS))) if text]


__all__ = [
    "BODY_SELECTORS",
    "ContentPolicyError",
    "DEFAULT_REMOVE_SELECTORS",
    "clean_text",
    "extract_body_text",
    "parse_html",
    "select_texts",
    "strip_boilerplate",
    "text_blocks",
]
