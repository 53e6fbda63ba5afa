"""Unit tests for snippet extraction."""

import pytest

from txtsearch.search.snippet import (
    SnippetExtractor,
    extract_query_terms,
    extract_snippet,
    find_best_match,
    snap_end,
    snap_start,
)


@pytest.mark.unit
def test_extract_query_terms_strips_syntax():
    terms = extract_query_terms('name:report.txt AND content:"data structures" NOT ab')

    assert terms == ["report.txt", "data", "structures"]


@pytest.mark.unit
def test_keywords_are_stripped_as_whole_words_only():
    assert extract_query_terms("ANDROID OR tips") == ["ANDROID", "tips"]


@pytest.mark.unit
def test_field_prefix_inside_a_word_is_kept():
    assert extract_query_terms("filename:x") == ["filename:x"]


@pytest.mark.unit
def test_find_best_match_prefers_earliest_occurrence():
    content = "gamma appears before alpha here"

    assert find_best_match(content, ["alpha", "gamma"]) == (0, 5)
    assert find_best_match(content, ["missing"]) is None


@pytest.mark.unit
def test_find_best_match_is_case_insensitive():
    assert find_best_match("Hello World", ["WORLD"]) == (6, 5)


@pytest.mark.unit
def test_snap_helpers_respect_distance():
    content = "aaaa bbbb cccc"

    assert snap_start(content, 7, 20) == 5
    assert snap_start(content, 0, 20) == 0
    assert snap_end(content, 6, 20) == 9
    assert snap_end(content, 20, 20) == len(content)
    assert snap_start("x" * 40 + " " + "y" * 40, 70, 20) == 70


@pytest.mark.unit
def test_snippet_contains_matching_term_case_insensitively():
    content = ("filler text " * 20) + "The Quarterly report is here. " + ("more words " * 20)

    snippet = extract_snippet(content, "quarterly")

    assert "quarterly" in snippet.lower()


@pytest.mark.unit
def test_short_content_without_match_is_unchanged():
    content = "short text with nothing relevant"

    assert extract_snippet(content, "zzz") == content


@pytest.mark.unit
def test_long_content_without_match_is_truncated():
    content = "x" * 200

    snippet = extract_snippet(content, "nomatch", max_length=150)

    assert len(snippet) == 153
    assert snippet.endswith("...")
    assert content.startswith(snippet[:-3])


@pytest.mark.unit
def test_short_content_with_match_has_no_ellipsis():
    assert extract_snippet("aaaa bbbb MATCHME cccc dddd", "MATCHME") == "aaaa bbbb MATCHME cccc dddd"


@pytest.mark.unit
def test_window_edges_snap_to_whitespace():
    content = ("lorem " * 20) + "MATCHME " + ("ipsum " * 40)

    snippet = extract_snippet(content, "MATCHME")

    assert snippet.startswith("...")
    assert snippet.endswith("...")
    core = snippet[3:-3]
    assert "MATCHME" in core
    assert set(core.split()) <= {"lorem", "MATCHME", "ipsum"}
    start = content.index(core)
    assert content[start - 1] == " "
    assert content[start + len(core)] == " "


@pytest.mark.unit
def test_empty_content_gives_empty_snippet():
    assert extract_snippet("", "anything") == ""


@pytest.mark.unit
def test_query_of_short_terms_falls_back_to_head():
    content = "ab " * 100

    snippet = SnippetExtractor(max_length=20).extract(content, "ab")

    assert snippet == content[:20] + "..."


@pytest.mark.unit
def test_extractor_settings_are_applied():
    content = ("word " * 30) + "needle" + (" word" * 30)
    extractor = SnippetExtractor(context_before=10, context_after=10, boundary_distance=5)

    snippet = extractor.extract(content, "needle")

    assert "needle" in snippet
    assert len(snippet) < 40


@pytest.mark.unit
def test_equal_positions_keep_the_first_listed_term():
    assert find_best_match("database here", ["data", "database"]) == (0, 4)
    assert find_best_match("database here", ["database", "data"]) == (0, 8)


@pytest.mark.unit
def test_matched_term_length_moves_the_window_end():
    content = "database" + " filler" * 40

    short_anchor = extract_snippet(content, "data database")
    long_anchor = extract_snippet(content, "database data")

    assert short_anchor == content[:106] + "..."
    assert long_anchor == content[:113] + "..."
