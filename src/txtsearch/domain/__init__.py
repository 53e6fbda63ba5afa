"""Domain value objects shared by the search and service layers."""

from txtsearch.domain.search import Document, SearchResult


__all__ = ["Document", "SearchResult"]
