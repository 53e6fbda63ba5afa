"""Searchable document fields and their scoring weights.

Every indexed document carries two searchable fields:

- filename: the bare file name, addressed in queries with ``name:``
- content: the full text, addressed in queries with ``content:``

Unscoped query text is searched across both fields, with filename matches
weighted higher so that a document *named* after the query ranks above one
that merely mentions it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SearchField(str, Enum):
    """Query-facing field names mapped onto index columns."""

    NAME = "name"
    CONTENT = "content"

    @property
    def prefix(self) -> str:
        """Return the scoping prefix users type, e.g. ``name:``."""
        return f"{self.value}:"

    @property
    def column(self) -> str:
        """Return the index column backing this field."""
        return _COLUMNS[self]


_COLUMNS = {
    SearchField.NAME: "filename",
    SearchField.CONTENT: "content",
}

# Column order inside the index table; bm25 weights are positional.
INDEX_COLUMNS: tuple[str, ...] = ("filename", "content")
STORED_ONLY_COLUMNS: tuple[str, ...] = ("path",)


@dataclass(frozen=True)
class FieldBoosts:
    """Per-field weights applied when unscoped text matches a field."""

    filename: float = 1.5
    content: float = 1.0

    def __post_init__(self) -> None:
        if self.filename <= 0 or self.content <= 0:
            msg = f"Field boosts must be positive, got filename={self.filename} content={self.content}"
            raise ValueError(msg)

    def for_column(self, column: str) -> float:
        if column == "filename":
            return self.filename
        if column == "content":
            return self.content
        msg = f"Unknown column '{column}'. Available: {list(INDEX_COLUMNS)}"
        raise ValueError(msg)

    def as_weights(self) -> tuple[float, ...]:
        """Return weights in index column order."""
        return tuple(self.for_column(column) for column in INDEX_COLUMNS)


UNIT_WEIGHTS: tuple[float, ...] = tuple(1.0 for _ in INDEX_COLUMNS)
