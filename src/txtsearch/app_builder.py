"""Wire settings into observability, indexing and search."""

from __future__ import annotations

import logging

from opentelemetry.sdk.trace import TracerProvider

from txtsearch.config import Settings, get_settings
from txtsearch.observability.logging import configure_logging
from txtsearch.observability.tracing import configure_trace_exporter, init_tracing
from txtsearch.search.indexer import DocumentIndexer, IndexBuildResult, IndexingContext
from txtsearch.service_layer.search_service import SearchService


logger = logging.getLogger(__name__)

_observability_holder: dict[str, TracerProvider | None] = {"provider": None}


def configure_observability(settings: Settings) -> TracerProvider:
    """Set up logging and tracing from ``settings``.

    The tracer provider is installed once per process; later calls only
    reconfigure logging and return the existing provider.
    """
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    provider = _observability_holder["provider"]
    if provider is None:
        provider = init_tracing(service_name=settings.service_name)
        configure_trace_exporter(settings.otlp_endpoint, provider)
        _observability_holder["provider"] = provider
    return provider


class AppBuilder:
    """Builds the indexer and search service from settings."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def configure_observability(self) -> TracerProvider:
        return configure_observability(self.settings)

    def build_indexer(self) -> DocumentIndexer:
        return DocumentIndexer(IndexingContext.from_settings(self.settings))

    def build_index(self) -> IndexBuildResult:
        """Index ``settings.data_dir`` into ``settings.index_dir``."""
        result = self.build_indexer().build_index()
        if result.errors:
            logger.warning("Index build skipped %d file(s)", result.documents_skipped)
        return result

    def build_search_service(self) -> SearchService:
        service = SearchService.from_settings(self.settings)
        logger.info("Search service ready on %s", self.settings.index_dir)
        return service
