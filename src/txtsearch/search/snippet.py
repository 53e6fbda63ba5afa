"""Snippet extraction around the best matching query term.

Given a document's text and the raw query that matched it, pick the earliest
occurrence of any meaningful query term and cut a bounded window around it:

- 50 characters of context before the match, 100 after
- window edges snap to a nearby space so words are not split
- ``...`` marks every side where text was cut

When no query term occurs in the text the snippet is the head of the
document, truncated to ``max_length``. Extraction never raises.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import re


FIELD_PREFIX_PATTERN = re.compile(r"(?<!\S)(?:name|content):")
BOOLEAN_KEYWORD_PATTERN = re.compile(r"\b(?:AND|OR|NOT)\b")
WHITESPACE_PATTERN = re.compile(r"\s+")
ELLIPSIS = "..."


def extract_query_terms(raw_query: str, min_length: int = 3) -> list[str]:
    """Return candidate snippet anchors from a raw query, in query order.

    Field prefixes, double quotes and the boolean keywords are stripped; terms
    shorter than ``min_length`` are too unselective to anchor a snippet.
    """
    cleaned = FIELD_PREFIX_PATTERN.sub("", raw_query)
    cleaned = cleaned.replace('"', "")
    cleaned = BOOLEAN_KEYWORD_PATTERN.sub("", cleaned)
    return [term for term in WHITESPACE_PATTERN.split(cleaned.strip()) if len(term) >= min_length]


def find_best_match(content: str, terms: Sequence[str]) -> tuple[int, int] | None:
    """Return (position, length) of the earliest term occurrence in ``content``.

    Matching is case-insensitive. On equal positions the term listed first wins.
    """
    content_lower = content.lower()
    best: tuple[int, int] | None = None
    for term in terms:
        position = content_lower.find(term.lower())
        if position == -1:
            continue
        if best is None or position < best[0]:
            best = (position, len(term))
    return best


def snap_start(content: str, start: int, max_distance: int) -> int:
    """Move ``start`` just past the nearest space at or before it."""
    if start <= 0:
        return 0
    space = content.rfind(" ", 0, start + 1)
    if space != -1 and space > start - max_distance:
        return space + 1
    return start


def snap_end(content: str, end: int, max_distance: int) -> int:
    """Move ``end`` back onto the nearest space at or after it."""
    if end >= len(content):
        return len(content)
    space = content.find(" ", end)
    if space > 0 and space < end + max_distance:
        return space
    return end


@dataclass(frozen=True)
class SnippetExtractor:
    """Extract bounded, word-safe excerpts for search results.

    Instances hold only immutable configuration and can be shared freely
    between threads.
    """

    max_length: int = 150
    context_before: int = 50
    context_after: int = 100
    boundary_distance: int = 20
    min_term_length: int = 3

    def extract(self, content: str, raw_query: str, max_length: int | None = None) -> str:
        if not content:
            return ""
        limit = self.max_length if max_length is None else max_length

        terms = extract_query_terms(raw_query or "", self.min_term_length)
        match = find_best_match(content, terms)
        if match is None:
            if len(content) > limit:
                return content[:limit] + ELLIPSIS
            return content

        position, term_length = match
        start = max(0, position - self.context_before)
        end = min(len(content), position + term_length + self.context_after)
        start = snap_start(content, start, self.boundary_distance)
        end = snap_end(content, end, self.boundary_distance)

        snippet = content[start:end]
        if start > 0:
            snippet = ELLIPSIS + snippet
        if end < len(content):
            snippet = snippet + ELLIPSIS
        return snippet


_DEFAULT_EXTRACTOR = SnippetExtractor()


def extract_snippet(content: str, raw_query: str, max_length: int = 150) -> str:
    """Extract a snippet with the default window settings."""
    return _DEFAULT_EXTRACTOR.extract(content, raw_query, max_length)
