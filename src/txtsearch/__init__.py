"""Full-text search over a directory of plain-text files."""

from txtsearch.domain.search import Document, SearchResult
from txtsearch.exceptions import EngineIOError, QueryGrammarError, SearchError
from txtsearch.service_layer.search_service import SearchService


__version__ = "0.1.0"

__all__ = [
    "Document",
    "EngineIOError",
    "QueryGrammarError",
    "SearchError",
    "SearchResult",
    "SearchService",
    "__version__",
]
