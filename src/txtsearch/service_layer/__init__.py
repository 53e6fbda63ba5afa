"""Service layer: use-case orchestration over the search components."""

from txtsearch.service_layer.search_service import SearchService


__all__ = ["SearchService"]
