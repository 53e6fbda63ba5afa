"""Query routing, snippets and the FTS5-backed index.

Public entry points:

- QueryRouter: raw query string to composed sub-queries
- FtsSearchEngine: executes composed queries against the latest segment
- DocumentIndexer: builds segments from text files or in-memory documents
- SnippetExtractor: word-safe excerpts around the best matching term
"""

from txtsearch.search.engine import FtsSearchEngine, SearchEngine, SearchHit
from txtsearch.search.fields import FieldBoosts, SearchField
from txtsearch.search.indexer import DocumentIndexer, IndexBuildResult, IndexingContext
from txtsearch.search.query_router import ComposedQuery, QueryRouter
from txtsearch.search.snippet import SnippetExtractor, extract_snippet


__all__ = [
    "ComposedQuery",
    "DocumentIndexer",
    "FieldBoosts",
    "FtsSearchEngine",
    "IndexBuildResult",
    "IndexingContext",
    "QueryRouter",
    "SearchEngine",
    "SearchField",
    "SearchHit",
    "SnippetExtractor",
    "extract_snippet",
]
