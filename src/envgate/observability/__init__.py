from .telemetry import (
    global_tracer,
    global_metrics,
    Tracer,
    Metrics,
    configure_opentelemetry,
    shutdown_opentelemetry,
)

__all__ = [
    "global_tracer",
    "global_metrics",
    "Tracer",
    "Metrics",
    "configure_opentelemetry",
    "shutdown_opentelemetry",
]
