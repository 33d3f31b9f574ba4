import logging
from typing import Any, Dict, Optional, ContextManager
from contextlib import contextmanager

from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    BatchSpanProcessor,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter

logger = logging.getLogger("envgate")

# ------------------------------------------------------------------------------
# OpenTelemetry (single init)
# ------------------------------------------------------------------------------

_OTEL_CONFIGURED = False


def _otlp_endpoint(endpoint: str, signal: str) -> str:
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    suffix = f"/v1/{signal}"
    if not endpoint.endswith(suffix):
        endpoint = endpoint.rstrip("/") + suffix
    return endpoint


def configure_opentelemetry(
    service_name: str = "envgate",
    otlp_trace_endpoint: Optional[str] = None,
    otlp_metric_endpoint: Optional[str] = None,
):
    """
    Configure OpenTelemetry exactly once.
    Without endpoints, spans and metrics go to the console exporters.
    """

    global _OTEL_CONFIGURED
    if _OTEL_CONFIGURED:
        logger.debug("OpenTelemetry already configured, skipping re-init")
        return

    logger.info("Configuring OpenTelemetry")

    resource = Resource.create({"service.name": service_name})

    # ------------------------
    # Traces
    # ------------------------

    tracer_provider = TracerProvider(resource=resource)

    if otlp_trace_endpoint:
        endpoint = _otlp_endpoint(otlp_trace_endpoint, "traces")
        logger.info("Using OTLP HTTP trace exporter -> %s", endpoint)
        span_processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))
    else:
        logger.warning("No OTLP trace endpoint set, using ConsoleSpanExporter")
        span_processor = SimpleSpanProcessor(ConsoleSpanExporter())

    tracer_provider.add_span_processor(span_processor)
    trace.set_tracer_provider(tracer_provider)

    # ------------------------
    # Metrics
    # ------------------------

    if otlp_metric_endpoint:
        endpoint = _otlp_endpoint(otlp_metric_endpoint, "metrics")
        reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=endpoint))
    else:
        reader = PeriodicExportingMetricReader(ConsoleMetricExporter())

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[reader],
    )
    metrics.set_meter_provider(meter_provider)

    _OTEL_CONFIGURED = True


def shutdown_opentelemetry():
    """Flush and shut down the configured providers."""
    if not _OTEL_CONFIGURED:
        return
    for provider in (trace.get_tracer_provider(), metrics.get_meter_provider()):
        if hasattr(provider, "shutdown"):
            logger.info("Shutting down OpenTelemetry provider (flush)")
            provider.shutdown()


# ------------------------------------------------------------------------------
# Tracer Wrapper
# ------------------------------------------------------------------------------

class Tracer:
    def __init__(self, name: str = "envgate"):
        self._tracer = trace.get_tracer(name)

    @contextmanager
    def start_span(
        self,
        name: str,
        attributes: Dict[str, Any] | None = None,
    ) -> ContextManager[trace.Span]:
        with self._tracer.start_as_current_span(
            name,
            attributes=attributes or {},
        ) as span:
            yield span


# ------------------------------------------------------------------------------
# Metrics Wrapper
# ------------------------------------------------------------------------------

class Metrics:
    def __init__(self, name: str = "envgate"):
        self._meter = metrics.get_meter(name)
        self._counters = {}

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        tags: Dict[str, str] | None = None,
    ):
        if name not in self._counters:
            self._counters[name] = self._meter.create_counter(name)
        self._counters[name].add(value, attributes=tags)


# ------------------------------------------------------------------------------
# Global instances
# ------------------------------------------------------------------------------

global_tracer = Tracer()
global_metrics = Metrics()
