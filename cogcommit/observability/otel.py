"""OpenTelemetry + Prometheus fallback wiring for the commit extractor.

Each metric is declared once in ``_METRICS`` and fans out to whichever backends
were started: the OTLP exporter when ``COGCOMMIT_OTEL_ENABLED`` is set, and a
Prometheus scrape endpoint on ``COGCOMMIT_PROM_PORT`` alongside it.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI

from cogcommit import config

logger = logging.getLogger("cogcommit.observability")


@dataclass
class _Metric:
    name: str
    kind: str  # "counter" | "histogram"
    unit: str
    description: str
    labels: tuple[str, ...]
    otel: Any | None = None
    prom: Any | None = None

    def record(self, amount: float, labels: dict[str, str]) -> None:
        if self.otel is not None:
            if self.kind == "counter":
                self.otel.add(amount, labels)
            else:
                self.otel.record(amount, labels)
        if self.prom is not None:
            bound = self.prom.labels(**labels)
            if self.kind == "counter":
                bound.inc(amount)
            else:
                bound.observe(amount)


_METRICS: dict[str, _Metric] = {
    metric.name: metric
    for metric in (
        _Metric("cogcommit_ingestion_events_total", "counter", "1",
                "Count of session log ingestion operations", ("entity", "result", "project")),
        _Metric("cogcommit_ingestion_latency_ms", "histogram", "ms",
                "Latency for batch and incremental ingestion", ("entity", "result", "project")),
        _Metric("cogcommit_parser_failures_total", "counter", "1",
                "Count of session files that failed to parse", ("parser", "project")),
        _Metric("cogcommit_commits_closed_total", "counter", "1",
                "Cognitive commits closed, by closure reason", ("closed_by", "project")),
        _Metric("cogcommit_malformed_lines_total", "counter", "1",
                "Log lines skipped because they did not parse", ("project",)),
    )
}

_initialized = False
_tracer: Any | None = None
_providers: list[Any] = []
_fastapi_instrumentor: Any | None = None


def _otlp_url(base: str, signal: str) -> str | None:
    """``http://collector:4318`` -> ``http://collector:4318/v1/<signal>``."""
    base = (base or "").strip().rstrip("/")
    if not base:
        return None
    if base.endswith(f"/v1/{signal}"):
        return base
    if base.endswith("/v1"):
        return f"{base}/{signal}"
    return f"{base}/v1/{signal}"


def _labels(**values: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def _start_prometheus() -> None:
    try:
        from prometheus_client import Counter, Histogram, start_http_server
    except ImportError as exc:
        logger.warning("Prometheus fallback not started: %s", exc)
        return

    factories = {"counter": Counter, "histogram": Histogram}
    try:
        start_http_server(config.PROM_PORT)
        for metric in _METRICS.values():
            metric.prom = factories[metric.kind](metric.name, metric.description, list(metric.labels))
    except (OSError, ValueError) as exc:
        logger.warning("Prometheus fallback not started: %s", exc)
        return
    logger.info("Prometheus metrics listening on port %s", config.PROM_PORT)


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _tracer, _fastapi_instrumentor

    if _initialized:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (COGCOMMIT_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "cogcommit"
    resource = Resource.create({"service.name": service_name})

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=_otlp_url(config.OTEL_ENDPOINT, "traces")))
    )
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=_otlp_url(config.OTEL_ENDPOINT, "metrics")))
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("cogcommit")

    for metric in _METRICS.values():
        create = meter.create_counter if metric.kind == "counter" else meter.create_histogram
        metric.otel = create(metric.name, unit=metric.unit, description=metric.description)

    _providers[:] = [meter_provider, tracer_provider]
    _tracer = trace.get_tracer("cogcommit")
    _fastapi_instrumentor = FastAPIInstrumentor()
    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _tracer
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
        for provider in _providers:
            provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.warning("OpenTelemetry shutdown incomplete: %s", exc)
    _providers.clear()
    _tracer = None
    for metric in _METRICS.values():
        metric.otel = None


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_ingestion(entity: str, result: str, duration_ms: float, *, project: str = "") -> None:
    labels = _labels(entity=entity, result=result, project=project)
    _METRICS["cogcommit_ingestion_events_total"].record(1, labels)
    _METRICS["cogcommit_ingestion_latency_ms"].record(max(0.0, float(duration_ms)), labels)


def record_parser_failure(parser: str, *, project: str = "") -> None:
    _METRICS["cogcommit_parser_failures_total"].record(1, _labels(parser=parser, project=project))


def record_malformed_lines(count: int, *, project: str = "") -> None:
    if count > 0:
        _METRICS["cogcommit_malformed_lines_total"].record(count, _labels(project=project))


def record_commit_closed(closed_by: str, *, project: str = "") -> None:
    _METRICS["cogcommit_commits_closed_total"].record(1, _labels(closed_by=closed_by, project=project))
