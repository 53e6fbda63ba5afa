"""Search service orchestration layer.

Routes a raw query, executes it on the engine and decorates every hit with
its filename and a snippet. Ranking belongs to the engine; the service never
re-orders hits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry.trace import SpanKind

from txtsearch.domain.search import SearchResult
from txtsearch.exceptions import EngineIOError
from txtsearch.observability.tracing import create_span
from txtsearch.search.engine import FtsSearchEngine, SearchEngine
from txtsearch.search.query_router import QueryRouter
from txtsearch.search.snippet import SnippetExtractor


if TYPE_CHECKING:
    from txtsearch.config import Settings

logger = logging.getLogger(__name__)


class SearchService:
    """High-level search API over one index.

    Router and extractor are immutable; the service may be shared between
    threads as long as the engine only reads.
    """

    def __init__(
        self,
        engine: SearchEngine,
        router: QueryRouter | None = None,
        extractor: SnippetExtractor | None = None,
        *,
        default_max_results: int = 10,
    ) -> None:
        self.engine = engine
        self.router = router or QueryRouter()
        self.extractor = extractor or SnippetExtractor()
        self.default_max_results = default_max_results

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchService:
        """Open the configured index with its search and snippet settings."""
        return cls(
            engine=FtsSearchEngine(settings.index_dir),
            router=QueryRouter(settings.field_boosts()),
            extractor=SnippetExtractor(max_length=settings.snippet_max_length),
            default_max_results=settings.max_results,
        )

    def search(self, raw_query: str, max_results: int | None = None) -> list[SearchResult]:
        """Return at most ``max_results`` results for ``raw_query``, best first.

        ``max_results`` defaults to the service's configured result count.

        Raises:
            QueryGrammarError: if the query is invalid under a field grammar.
            EngineIOError: if the index cannot be read.
        """
        if max_results is None:
            max_results = self.default_max_results
        with create_span(
            "search.query",
            kind=SpanKind.INTERNAL,
            attributes={"search.query": (raw_query or "")[:100], "search.max_results": max_results},
        ) as span:
            if max_results <= 0:
                span.set_attribute("search.result_count", 0)
                return []

            composed = self.router.route(raw_query)
            if composed.match_nothing:
                span.set_attribute("search.result_count", 0)
                return []

            hits = self.engine.execute(composed, max_results)
            results: list[SearchResult] = []
            for hit in hits:
                filename = self.engine.get_stored_field(hit.doc_ref, "filename")
                if filename is None:
                    raise EngineIOError(f"Document {hit.doc_ref} has no stored filename")
                content = self.engine.get_stored_field(hit.doc_ref, "content") or ""
                results.append(
                    SearchResult(
                        filename=filename,
                        snippet=self.extractor.extract(content, raw_query),
                        score=hit.score,
                    )
                )

            span.set_attribute("search.result_count", len(results))
            logger.debug("Search %r returned %d result(s)", raw_query, len(results))
            return results

    def close(self) -> None:
        close = getattr(self.engine, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> SearchService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
