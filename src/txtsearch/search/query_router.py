"""Route a raw query string into field-scoped and general sub-queries.

A raw query mixes unscoped text with terms scoped to one field::

    budget name:report.txt content:"quarterly figures" 2024

The router partitions it with an explicit left-to-right scan, parses every
field's terms with that field's grammar and the leftover text with the
multi-field grammar, then composes the OR of every sub-query it produced.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
import logging
from types import MappingProxyType

from txtsearch.search.fields import FieldBoosts, SearchField
from txtsearch.search.qparser import FieldQueryParser, FtsQuery, MultiFieldQueryParser


logger = logging.getLogger(__name__)


class QueryTokenKind(str, Enum):
    FIELD_TERM = "field_term"
    PLAIN_TEXT = "plain_text"


@dataclass(frozen=True)
class QueryToken:
    """A span of the raw query: either a ``<field>:<term>`` or plain text."""

    kind: QueryTokenKind
    text: str
    span: tuple[int, int]
    field: SearchField | None = None
    phrase: bool = False
    prefix: bool = False

    def as_clause_text(self) -> str:
        """Return the term as field-grammar input, re-quoting phrases."""
        if not self.phrase:
            return self.text
        return f'"{self.text}"' + ("*" if self.prefix else "")


@dataclass(frozen=True)
class FieldClause:
    field: SearchField
    terms: tuple[QueryToken, ...]

    def text(self) -> str:
        return " ".join(term.as_clause_text() for term in self.terms)


@dataclass(frozen=True)
class QueryPartition:
    """Field clauses plus the unscoped remainder of a raw query."""

    field_clauses: Mapping[SearchField, FieldClause]
    general_text: str


@dataclass(frozen=True)
class ComposedQuery:
    """OR-combination of every sub-query produced for one raw query.

    An instance with no sub-queries is the match-nothing marker; use
    :attr:`match_nothing` rather than comparing against it.
    """

    field_queries: Mapping[SearchField, FtsQuery] = dataclass_field(default_factory=lambda: MappingProxyType({}))
    general_query: FtsQuery | None = None

    @property
    def match_nothing(self) -> bool:
        return not self.field_queries and self.general_query is None

    def subqueries(self) -> tuple[FtsQuery, ...]:
        """Return every sub-query: field clauses in field order, then general."""
        ordered = [self.field_queries[f] for f in SearchField if f in self.field_queries]
        if self.general_query is not None:
            ordered.append(self.general_query)
        return tuple(ordered)


MATCH_NOTHING = ComposedQuery()

_PREFIXES = tuple((f, f.prefix) for f in SearchField)


def scan_query(raw: str) -> list[QueryToken]:
    """Tokenize ``raw`` into field terms and plain-text spans.

    A field prefix is only recognised at a token boundary: start of input,
    after whitespace, or directly after a previous field term. ``filename:x``
    is therefore plain text, not a ``name:`` term.
    """

    tokens: list[QueryToken] = []
    length = len(raw)
    plain_start = 0
    index = 0
    at_boundary = True
    while index < length:
        if raw[index].isspace():
            index += 1
            at_boundary = True
            continue

        matched = _match_prefix(raw, index) if at_boundary else None
        if matched is None:
            while index < length and not raw[index].isspace():
                index += 1
            at_boundary = False
            continue

        search_field, term_start = matched
        _append_plain(tokens, raw, plain_start, index)
        term, phrase, prefix, end = _read_term(raw, term_start)
        if term:
            tokens.append(
                QueryToken(
                    kind=QueryTokenKind.FIELD_TERM,
                    text=term,
                    span=(index, end),
                    field=search_field,
                    phrase=phrase,
                    prefix=prefix,
                )
            )
        index = end
        plain_start = end
        at_boundary = True

    _append_plain(tokens, raw, plain_start, length)
    return tokens


def _match_prefix(raw: str, index: int) -> tuple[SearchField, int] | None:
    for search_field, prefix in _PREFIXES:
        if raw.startswith(prefix, index):
            return search_field, index + len(prefix)
    return None


def _read_term(raw: str, start: int) -> tuple[str, bool, bool, int]:
    """Return (term, is_phrase, is_prefix, end) for the term at ``start``."""

    length = len(raw)
    if start < length and raw[start] == '"':
        close = raw.find('"', start + 1)
        if close != -1:
            end = close + 1
            prefix = end < length and raw[end] == "*"
            if prefix:
                end += 1
            return raw[start + 1 : close], True, prefix, end
    end = start
    while end < length and not raw[end].isspace():
        end += 1
    return raw[start:end], False, False, end


def _append_plain(tokens: list[QueryToken], raw: str, start: int, end: int) -> None:
    text = raw[start:end].strip()
    if text:
        tokens.append(QueryToken(kind=QueryTokenKind.PLAIN_TEXT, text=text, span=(start, end)))


def partition_query(raw: str) -> QueryPartition:
    """Split ``raw`` into per-field clauses and general text."""

    field_terms: dict[SearchField, list[QueryToken]] = {}
    general_parts: list[str] = []
    for token in scan_query(raw):
        if token.kind is QueryTokenKind.FIELD_TERM and token.field is not None:
            field_terms.setdefault(token.field, []).append(token)
        else:
            general_parts.append(token.text)

    clauses = {f: FieldClause(field=f, terms=tuple(terms)) for f, terms in field_terms.items()}
    return QueryPartition(field_clauses=MappingProxyType(clauses), general_text=" ".join(general_parts))


class QueryRouter:
    """Build a :class:`ComposedQuery` from a raw query string.

    The router holds only immutable configuration (its grammars and boost
    weights) and is safe to share between threads.
    """

    def __init__(self, boosts: FieldBoosts | None = None) -> None:
        self.boosts = boosts or FieldBoosts()
        self._field_parsers = {f: FieldQueryParser(f) for f in SearchField}
        self._general_parser = MultiFieldQueryParser(self.boosts)

    def route(self, raw: str) -> ComposedQuery:
        """Return the composed query for ``raw``.

        Raises:
            QueryGrammarError: if any clause is invalid under its grammar.
        """

        if not raw or not raw.strip():
            return MATCH_NOTHING

        partition = partition_query(raw)
        field_queries: dict[SearchField, FtsQuery] = {}
        for search_field, clause in partition.field_clauses.items():
            parsed = self._field_parsers[search_field].parse(clause.text())
            if parsed is not None:
                field_queries[search_field] = parsed

        general_query = None
        if partition.general_text:
            general_query = self._general_parser.parse(partition.general_text)

        if not field_queries and general_query is None:
            logger.debug("Query %r produced no sub-queries", raw)
            return MATCH_NOTHING

        composed = ComposedQuery(field_queries=MappingProxyType(field_queries), general_query=general_query)
        logger.debug(
            "Routed query %r into %d field clause(s)%s",
            raw,
            len(field_queries),
            " and a general clause" if general_query is not None else "",
        )
        return composed
