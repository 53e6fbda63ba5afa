"""Search engine over a committed FTS5 index segment.

The engine executes a :class:`ComposedQuery` as the OR of its sub-queries:
a document matching any sub-query is a hit, and its score is the sum of the
bm25 scores it earns from each sub-query it matches. Hits are ranked by that
score, highest first, with the document reference breaking ties so ranking
is deterministic for a given index.
"""

from __future__ import annotations

from dataclasses import dataclass
import heapq
import logging
from pathlib import Path
import sqlite3
from typing import Protocol

from opentelemetry.trace import SpanKind

from txtsearch.domain.search import Document
from txtsearch.exceptions import EngineIOError, QueryGrammarError
from txtsearch.observability.tracing import create_span
from txtsearch.search.query_router import ComposedQuery
from txtsearch.search.sqlite_storage import Segment, SegmentStore


logger = logging.getLogger(__name__)

_GRAMMAR_ERROR_MARKERS = ("fts5: syntax error", "unterminated string", "no such column", "unknown special query")


@dataclass(frozen=True)
class SearchHit:
    """Opaque document reference plus its relevance score."""

    doc_ref: int
    score: float


class SearchEngine(Protocol):
    """What the search service needs from an index backend."""

    def execute(self, query: ComposedQuery, max_results: int) -> list[SearchHit]: ...

    def get_stored_field(self, doc_ref: int, field_name: str) -> str | None: ...


class FtsSearchEngine:
    """Read-only engine bound to the latest segment of an index directory.

    The segment is opened lazily on first use and stays open until
    :meth:`close`. Reads go through thread-local SQLite connections, so one
    engine may serve concurrent searches.
    """

    def __init__(self, index_dir: str | Path) -> None:
        self.index_dir = Path(index_dir)
        self._segment: Segment | None = None

    @property
    def segment(self) -> Segment:
        if self._segment is None:
            self._segment = self._open_segment()
        return self._segment

    def _open_segment(self) -> Segment:
        if not self.index_dir.is_dir():
            raise EngineIOError(f"Index directory does not exist: {self.index_dir}")
        store = SegmentStore(self.index_dir, create=False)
        segment = store.latest()
        if segment is None:
            raise EngineIOError(f"No readable index segment in {self.index_dir}")
        logger.info(
            "Opened index segment %s (%d document(s)) from %s",
            segment.segment_id,
            segment.doc_count,
            self.index_dir,
        )
        return segment

    def execute(self, query: ComposedQuery, max_results: int) -> list[SearchHit]:
        """Return the top ``max_results`` hits for ``query``.

        Raises:
            QueryGrammarError: if the engine rejects a sub-query expression.
            EngineIOError: if the index cannot be read.
        """
        if query.match_nothing or max_results <= 0:
            return []

        subqueries = query.subqueries()
        with create_span(
            "search.engine.execute",
            kind=SpanKind.INTERNAL,
            attributes={"search.subquery_count": len(subqueries), "search.max_results": max_results},
        ) as span:
            segment = self.segment
            scores: dict[int, float] = {}
            for subquery in subqueries:
                try:
                    matches = segment.match(subquery.expression, subquery.weights)
                except sqlite3.Error as exc:
                    raise self._translate_error(exc, subquery.clause) from exc
                for doc_ref, score in matches:
                    scores[doc_ref] = scores.get(doc_ref, 0.0) + score

            top = heapq.nsmallest(max_results, scores.items(), key=lambda item: (-item[1], item[0]))
            span.set_attribute("search.match_count", len(scores))
            return [SearchHit(doc_ref=doc_ref, score=score) for doc_ref, score in top]

    def get_stored_field(self, doc_ref: int, field_name: str) -> str | None:
        """Return a stored field of a hit, or None if the document lacks it."""
        try:
            return self.segment.get_stored_field(doc_ref, field_name)
        except sqlite3.Error as exc:
            raise EngineIOError(f"Failed to read '{field_name}' of document {doc_ref}: {exc}") from exc

    def get_document(self, doc_ref: int) -> Document:
        try:
            document = self.segment.get_document(doc_ref)
        except sqlite3.Error as exc:
            raise EngineIOError(f"Failed to read document {doc_ref}: {exc}") from exc
        if document is None:
            raise EngineIOError(f"Document {doc_ref} is not in segment {self.segment.segment_id}")
        return document

    def close(self) -> None:
        if self._segment is not None:
            self._segment.close()
            self._segment = None

    def __enter__(self) -> FtsSearchEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _translate_error(exc: sqlite3.Error, clause: str) -> Exception:
        message = str(exc)
        if isinstance(exc, sqlite3.OperationalError) and any(
            marker in message.lower() for marker in _GRAMMAR_ERROR_MARKERS
        ):
            return QueryGrammarError(f"Invalid query '{clause}': {message}", clause=clause)
        return EngineIOError(f"Index read failed: {message}")
