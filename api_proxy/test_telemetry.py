from unittest.mock import Mock

from opentelemetry.sdk.trace.export import SpanExportResult

from api_proxy.telemetry import BodyChunkFilteringExporter


def span(attributes):
    return Mock(attributes=attributes)


def test_body_chunk_spans_dropped():
    inner = Mock()
    inner.export.return_value = SpanExportResult.SUCCESS
    exporter = BodyChunkFilteringExporter(inner)
    keep = span({"proxy.target_url": "https://api.openai.com/v1/models"})

    exporter.export([span({"asgi.event.type": "http.response.body"}), keep, span(None)])

    exported = inner.export.call_args[0][0]
    assert keep in exported
    assert len(exported) == 2


def test_nothing_exported_when_only_body_chunks():
    inner = Mock()
    exporter = BodyChunkFilteringExporter(inner)

    result = exporter.export([span({"asgi.event.type": "http.response.body"})])

    assert result == SpanExportResult.SUCCESS
    inner.export.assert_not_called()
