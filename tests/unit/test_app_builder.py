"""Unit tests for settings-driven wiring."""

import pytest

from txtsearch import app_builder
from txtsearch.app_builder import AppBuilder, configure_observability
from txtsearch.config import Settings


@pytest.fixture
def recorded_calls(monkeypatch):
    calls = []
    monkeypatch.setitem(app_builder._observability_holder, "provider", None)
    monkeypatch.setattr(app_builder, "configure_logging", lambda **kwargs: calls.append(("logging", kwargs)))
    monkeypatch.setattr(
        app_builder,
        "init_tracing",
        lambda **kwargs: calls.append(("tracing", kwargs)) or "provider",
    )
    monkeypatch.setattr(
        app_builder,
        "configure_trace_exporter",
        lambda endpoint, provider: calls.append(("exporter", endpoint, provider)),
    )
    return calls


@pytest.fixture
def settings(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "alpha.txt").write_text("hello world", encoding="utf-8")
    (data_dir / "beta.log").write_text("hello log", encoding="utf-8")
    (data_dir / "gamma.txt").write_text("hello again", encoding="utf-8")
    return Settings(
        data_dir=data_dir,
        index_dir=tmp_path / "index",
        file_suffixes=".txt,.log",
        max_results=2,
        log_level="warning",
        log_json=False,
        otlp_endpoint="http://collector:4318/v1/traces",
        service_name="search-unit",
    )


@pytest.mark.unit
def test_configure_observability_applies_settings(recorded_calls, settings):
    provider = configure_observability(settings)

    assert provider == "provider"
    assert recorded_calls == [
        ("logging", {"level": "warning", "json_output": False}),
        ("tracing", {"service_name": "search-unit"}),
        ("exporter", "http://collector:4318/v1/traces", "provider"),
    ]


@pytest.mark.unit
def test_tracing_is_initialized_once(recorded_calls, settings):
    configure_observability(settings)
    configure_observability(settings)

    assert [call[0] for call in recorded_calls] == ["logging", "tracing", "exporter", "logging"]


@pytest.mark.unit
def test_builder_uses_cached_settings_by_default(monkeypatch):
    monkeypatch.setenv("TXTSEARCH_MAX_RESULTS", "7")

    assert AppBuilder().settings.max_results == 7


@pytest.mark.unit
def test_build_index_follows_configured_suffixes(settings):
    result = AppBuilder(settings).build_index()

    assert result.documents_indexed == 3


@pytest.mark.unit
def test_search_service_defaults_to_configured_result_count(settings):
    builder = AppBuilder(settings)
    builder.build_index()

    with builder.build_search_service() as service:
        results = service.search("hello")

    assert len(results) == 2
