"""Centralized configuration for txtsearch using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from txtsearch.search.fields import FieldBoosts


_LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``TXTSEARCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TXTSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Storage
    index_dir: Path = Field(default=Path("index"), description="Directory holding index segments")
    data_dir: Path = Field(default=Path("data"), description="Directory scanned for documents to index")
    file_suffixes: str = Field(default=".txt", description="Comma-separated file suffixes to index")
    tokenizer: str = Field(
        default="unicode61 remove_diacritics 2",
        min_length=1,
        description="FTS5 tokenizer spec applied to both searchable fields",
    )

    # Search
    max_results: int = Field(default=10, ge=1, description="Default number of results per search")
    snippet_max_length: int = Field(default=150, ge=10, description="Snippet length when no query term is found")
    filename_boost: float = Field(default=1.5, gt=0, description="Weight of filename matches for unscoped text")
    content_boost: float = Field(default=1.0, gt=0, description="Weight of content matches for unscoped text")

    # Observability
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    otlp_endpoint: str = Field(default="", description="OTLP/HTTP trace endpoint; empty disables export")
    service_name: str = Field(default="txtsearch", description="service.name resource attribute for traces")

    @model_validator(mode="after")
    def _check_log_level(self) -> "Settings":
        if self.log_level.lower() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level '{self.log_level}'. Expected one of: {', '.join(sorted(_LOG_LEVELS))}")
        return self

    def get_file_suffixes(self) -> tuple[str, ...]:
        """Get the indexed suffixes, each normalized to a leading dot."""
        suffixes = []
        for raw in self.file_suffixes.split(","):
            suffix = raw.strip().lower()
            if suffix:
                suffixes.append(suffix if suffix.startswith(".") else f".{suffix}")
        return tuple(suffixes)

    def field_boosts(self) -> FieldBoosts:
        return FieldBoosts(filename=self.filename_boost, content=self.content_boost)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
