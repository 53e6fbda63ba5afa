"""Typed errors surfaced by the search layer."""

from __future__ import annotations


class SearchError(Exception):
    """Base class for failures raised while answering a search."""


class QueryGrammarError(SearchError):
    """Raised when a query clause is not valid under its field grammar.

    The message is meant to be shown to the user verbatim so they can fix the
    query and retry.
    """

    def __init__(self, message: str, *, clause: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.clause = clause


class EngineIOError(SearchError):
    """Raised when the index storage is missing, unreadable or corrupt."""
