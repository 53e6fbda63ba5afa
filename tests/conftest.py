"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest


# Complete test environment that overrides every configurable value
TEST_ENV = {
    "TXTSEARCH_INDEX_DIR": "test-index",
    "TXTSEARCH_DATA_DIR": "test-data",
    "TXTSEARCH_FILE_SUFFIXES": ".txt",
    "TXTSEARCH_TOKENIZER": "unicode61 remove_diacritics 2",
    "TXTSEARCH_MAX_RESULTS": "10",
    "TXTSEARCH_SNIPPET_MAX_LENGTH": "150",
    "TXTSEARCH_FILENAME_BOOST": "1.5",
    "TXTSEARCH_CONTENT_BOOST": "1.0",
    "TXTSEARCH_LOG_LEVEL": "info",
    "TXTSEARCH_LOG_JSON": "true",
    "TXTSEARCH_OTLP_ENDPOINT": "",
    "TXTSEARCH_SERVICE_NAME": "txtsearch-tests",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from txtsearch.config import get_settings
from txtsearch.domain.search import Document
from txtsearch.search.indexer import DocumentIndexer, IndexingContext


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset the environment and the cached settings for every test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_documents() -> list[Document]:
    """Small corpus covering filename, content, phrase and boolean cases."""
    return [
        Document(filename="alpha.txt", content="hello world"),
        Document(filename="report.txt", content="Quarterly numbers for the board."),
        Document(
            filename="notes.txt",
            content="The report.txt file is attached. We studied data structures and algorithms.",
        ),
        Document(filename="lecture.txt", content="A lecture on structures of data and their uses."),
        Document(filename="python.txt", content="Python programming guide with examples in python."),
    ]


@pytest.fixture
def build_index(tmp_path):
    """Factory that commits documents into a fresh index directory."""
    counter = {"value": 0}

    def _build(documents: list[Document]) -> Path:
        counter["value"] += 1
        index_dir = tmp_path / f"index-{counter['value']}"
        context = IndexingContext(data_dir=tmp_path / "data", index_dir=index_dir)
        DocumentIndexer(context).index_documents(documents)
        return index_dir

    return _build


@pytest.fixture
def sample_index(build_index, sample_documents) -> Path:
    return build_index(sample_documents)
