"""End-to-end search over text files indexed into a real FTS5 segment.

Run with: pytest tests/integration -v
"""

from pathlib import Path

import pytest

from txtsearch.config import Settings
from txtsearch.exceptions import EngineIOError, QueryGrammarError
from txtsearch.search.indexer import DocumentIndexer, IndexingContext
from txtsearch.service_layer.search_service import SearchService


CORPUS = {
    "alpha.txt": "hello world",
    "report.txt": "Quarterly numbers for the board. Revenue grew in every region.",
    "notes/meeting.txt": (
        "Minutes of the weekly meeting. The report.txt file is attached for review. "
        "We also discussed data structures and algorithms for the new search feature."
    ),
    "notes/lecture.txt": "A lecture on structures of data and their many uses in practice.",
    "guides/python.txt": "Python programming guide with examples in python and more python.",
}


@pytest.fixture
def settings(tmp_path) -> Settings:
    data_dir = tmp_path / "data"
    for relative, text in CORPUS.items():
        path = data_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return Settings(data_dir=data_dir, index_dir=tmp_path / "index")


@pytest.fixture
def service(settings):
    result = DocumentIndexer(IndexingContext.from_settings(settings)).build_index()
    assert result.documents_indexed == len(CORPUS)

    with SearchService.from_settings(settings) as search_service:
        yield search_service


def _names(results) -> list[str]:
    return [result.filename for result in results]


def test_plain_term_finds_file_by_name(service):
    results = service.search("alpha", 10)

    assert _names(results) == ["alpha.txt"]
    assert results[0].score > 0
    assert results[0].snippet == "hello world"


def test_blank_queries_return_nothing(service):
    assert service.search("", 10) == []
    assert service.search("   \t", 10) == []


def test_name_clause_ignores_content_mentions(service):
    assert _names(service.search("name:report.txt", 10)) == ["report.txt"]


def test_content_phrase_matches_exact_order(service):
    results = service.search('content:"data structures"', 10)

    assert _names(results) == ["meeting.txt"]
    assert "data structures" in results[0].snippet


def test_field_and_general_clauses_are_unioned(service):
    assert sorted(_names(service.search("name:alpha revenue", 10))) == ["alpha.txt", "report.txt"]


def test_filename_matches_outrank_content_matches(service):
    results = service.search("report", 10)

    assert _names(results)[0] == "report.txt"
    assert "meeting.txt" in _names(results)


def test_max_results_bounds_output(service):
    assert len(service.search("txt", 2)) == 2


def test_result_rendering(service):
    (result,) = service.search("name:alpha", 10)

    assert str(result) == f"File: alpha.txt\nScore: {result.score:.4f}\nSnippet: hello world\n"


def test_long_document_snippet_is_bounded(service):
    (result,) = service.search("algorithms", 10)

    assert "algorithms" in result.snippet
    assert result.snippet.startswith("...")


def test_unbalanced_quote_raises_grammar_error(service):
    with pytest.raises(QueryGrammarError):
        service.search('content:"data structures', 10)


def test_missing_index_raises_engine_error(tmp_path):
    settings = Settings(index_dir=tmp_path / "nowhere")

    with SearchService.from_settings(settings) as search_service, pytest.raises(EngineIOError):
        search_service.search("alpha", 10)


def test_reindex_is_picked_up_by_new_service(settings, service):
    Path(settings.data_dir / "late.txt").write_text("a late arrival about zebras", encoding="utf-8")
    DocumentIndexer(IndexingContext.from_settings(settings)).build_index()

    with SearchService.from_settings(settings) as fresh:
        assert _names(fresh.search("zebras", 10)) == ["late.txt"]


def test_negation_between_field_clauses_is_rejected(tmp_path):
    data_dir = tmp_path / "fruit"
    data_dir.mkdir()
    fruit = {"alpha.txt": "apples only", "beta.txt": "bananas only", "gamma.txt": "apples and bananas"}
    for name, text in fruit.items():
        (data_dir / name).write_text(text, encoding="utf-8")
    settings = Settings(data_dir=data_dir, index_dir=tmp_path / "fruit-index")
    DocumentIndexer(IndexingContext.from_settings(settings)).build_index()

    with SearchService.from_settings(settings) as fruit_search:
        with pytest.raises(QueryGrammarError, match="'NOT' must be followed by a term"):
            fruit_search.search("content:apples NOT content:bananas", 10)

        assert _names(fruit_search.search("apples NOT bananas", 10)) == ["alpha.txt"]
