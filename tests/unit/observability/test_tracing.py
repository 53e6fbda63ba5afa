"""Unit tests for span helpers."""

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
import pytest

from txtsearch.exceptions import QueryGrammarError
from txtsearch.observability import tracing
from txtsearch.observability.context import get_trace_context
from txtsearch.search.engine import FtsSearchEngine
from txtsearch.service_layer.search_service import SearchService


def _service(index_dir):
    return SearchService(FtsSearchEngine(index_dir))


@pytest.fixture
def exporter(monkeypatch):
    span_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    monkeypatch.setitem(tracing._tracer_holder, "tracer", provider.get_tracer("tests"))
    yield span_exporter
    provider.shutdown()


@pytest.mark.unit
def test_create_span_sets_attributes_and_log_context(exporter):
    with tracing.create_span("unit.span", attributes={"search.max_results": 5}) as span:
        ctx = span.get_span_context()
        assert get_trace_context()["span_id"] == format(ctx.span_id, "016x")

    (finished,) = exporter.get_finished_spans()
    assert finished.name == "unit.span"
    assert finished.attributes["search.max_results"] == 5


@pytest.mark.unit
def test_create_span_records_exceptions(exporter):
    with pytest.raises(ValueError), tracing.create_span("unit.failure"):
        raise ValueError("boom")

    (finished,) = exporter.get_finished_spans()
    assert finished.status.status_code is StatusCode.ERROR
    assert [event.name for event in finished.events] == ["exception"]


@pytest.mark.unit
def test_search_records_query_span(exporter, sample_index):
    with _service(sample_index) as service:
        service.search("alpha", 3)

    spans = {span.name: span for span in exporter.get_finished_spans()}
    assert spans["search.query"].attributes["search.query"] == "alpha"
    assert spans["search.query"].attributes["search.result_count"] == 1
    assert "search.engine.execute" in spans


@pytest.mark.unit
def test_failed_search_marks_span_as_error(exporter, sample_index):
    with _service(sample_index) as service, pytest.raises(QueryGrammarError):
        service.search('"unbalanced', 3)

    (finished,) = exporter.get_finished_spans()
    assert finished.status.status_code is StatusCode.ERROR


@pytest.mark.unit
def test_configure_trace_exporter_without_endpoint_is_noop():
    assert tracing.configure_trace_exporter("") is False


@pytest.mark.unit
def test_configure_trace_exporter_attaches_processor():
    provider = TracerProvider()

    assert tracing.configure_trace_exporter("http://localhost:4318/v1/traces", provider) is True
    provider.shutdown()