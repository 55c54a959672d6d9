import logging
from typing import Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from api_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

_provider_configured = False


class BodyChunkFilteringExporter(SpanExporter):
    """
    Drops the per-chunk ``http.response.body`` spans the ASGI instrumentation
    emits for streamed responses; a long completion stream would otherwise
    produce one span per relayed chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        kept = [span for span in spans if not is_body_chunk_span(span)]
        if not kept:
            return SpanExportResult.SUCCESS
        return self.exporter.export(kept)

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def is_body_chunk_span(span: ReadableSpan) -> bool:
    attributes = span.attributes or {}
    return attributes.get("asgi.event.type") == "http.response.body"


def _configure_provider() -> None:
    global _provider_configured
    if _provider_configured:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    if OTLP_ENDPOINT:
        exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=(OTLP_HEADERS.split(",") if OTLP_HEADERS else None),
        )
        provider.add_span_processor(
            BatchSpanProcessor(BodyChunkFilteringExporter(exporter))
        )
        logger.info(f"[Startup] Exporting traces to {OTLP_ENDPOINT}")
    trace.set_tracer_provider(provider)
    _provider_configured = True


def configure_tracing(app: FastAPI) -> None:
    _configure_provider()
    FastAPIInstrumentor.instrument_app(app)
