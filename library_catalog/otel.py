"""OpenTelemetry wiring for the catalog.

``configure_otel`` installs OTLP exporters for traces, metrics and logs when
telemetry is enabled. The search counter is always safe to use: before a
meter provider is installed it records into the API's no-op provider.
"""

import logging
import os

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .search import SearchOutcome

UNTRACED_PATHS = ("/api/health", "/static/.*")

meter = metrics.get_meter("library_catalog")
search_outcomes = meter.create_counter(
    "catalog.search.outcomes",
    unit="{search}",
    description="Book searches by the tier that answered them",
)
search_hits = meter.create_histogram(
    "catalog.search.hits",
    unit="{book}",
    description="Books returned per search",
)


def record_search(outcome: SearchOutcome) -> None:
    attributes = {"catalog.search.tier": outcome.tier.value}
    search_outcomes.add(1, attributes)
    search_hits.record(len(outcome.books), attributes)


def _collector_url(signal: str) -> str:
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://otel-collector:4318")
    return f"{endpoint.rstrip('/')}/v1/{signal}"


def _resource(app) -> Resource:
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "library-catalog"),
            "service.version": app.version,
        }
    )


def configure_otel(app) -> None:
    resource = _resource(app)

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=_collector_url("traces"))))
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=_collector_url("metrics")),
        export_interval_millis=15000,
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter(endpoint=_collector_url("logs"))))
    set_logger_provider(logger_provider)
    # Adds otelTraceID and otelSpanID to every log record.
    LoggingInstrumentor().instrument(set_logging_format=True)
    logging.getLogger("library_catalog").addHandler(LoggingHandler(level=logging.INFO, logger_provider=logger_provider))

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        excluded_urls=",".join(UNTRACED_PATHS),
    )
