"""Domain models for search functionality.

Following Cosmic Python principles:
- Value Objects are immutable (frozen=True)
- No infrastructure dependencies
"""

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """A plain-text document as handed to the indexer.

    ``path`` identifies the source uniquely within one index build; it
    defaults to the filename for documents that do not come from disk.
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(min_length=1)
    content: str = ""
    path: str | None = None

    @property
    def key(self) -> str:
        return self.path or self.filename


class SearchResult(BaseModel):
    """Value object for a single ranked hit returned to callers.

    Created fresh for every hit of a search call and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    filename: str
    snippet: str
    score: float

    def __str__(self) -> str:
        return f"File: {self.filename}\nScore: {self.score:.4f}\nSnippet: {self.snippet}\n"
