"""
OpenTelemetry SDK configuration and initialization.

Installs the TracerProvider and MeterProvider that HabitMetrics and the
auto-instrumentation record into. Without an OTLP endpoint, spans and
metrics go to console exporters.
"""

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from backend.settings import Settings

logger = logging.getLogger(__name__)

# Track initialization state
_initialized = False


def configure_observability(settings: "Settings") -> None:
    """
    Configure OpenTelemetry SDK with tracing, metrics, and auto-instrumentation.

    Args:
        settings: Application settings with OTel configuration.
    """
    global _initialized

    if _initialized:
        logger.debug("OpenTelemetry already initialized, skipping")
        return

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled via settings")
        return

    try:
        from opentelemetry import trace
        from opentelemetry.propagate import set_global_textmap
        from opentelemetry.propagators.b3 import B3MultiFormat
        from opentelemetry.propagators.composite import CompositePropagator
        from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
        from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

        resource_attributes = {
            SERVICE_NAME: settings.otel_service_name,
            SERVICE_VERSION: "1.0.0",
            "deployment.environment": settings.environment,
        }
        if settings.render_git_commit:
            resource_attributes["service.instance.id"] = settings.render_git_commit

        resource = Resource.create(resource_attributes)

        sampler = TraceIdRatioBased(settings.otel_traces_sample_rate)
        tracer_provider = TracerProvider(resource=resource, sampler=sampler)

        if settings.otel_exporter_otlp_endpoint:
            _configure_otlp_exporters(
                tracer_provider,
                settings.otel_exporter_otlp_endpoint,
                settings.otel_exporter_otlp_protocol,
            )
        else:
            # Console exporter for development
            _configure_console_exporters(tracer_provider)

        trace.set_tracer_provider(tracer_provider)

        _configure_meter_provider(
            resource,
            settings.otel_exporter_otlp_endpoint,
            settings.otel_exporter_otlp_protocol,
            settings.otel_metrics_export_interval_ms,
        )

        # W3C TraceContext + B3
        set_global_textmap(CompositePropagator([
            TraceContextTextMapPropagator(),
            B3MultiFormat(),
        ]))

        _configure_auto_instrumentation(settings.otel_log_correlation)

        _initialized = True
        logger.info(
            "OpenTelemetry initialized: service=%s, sample_rate=%.2f, endpoint=%s",
            settings.otel_service_name,
            settings.otel_traces_sample_rate,
            settings.otel_exporter_otlp_endpoint or "console",
        )

    except Exception as e:
        logger.error("Failed to initialize OpenTelemetry: %s", e)


def _configure_otlp_exporters(tracer_provider, endpoint: str, protocol: str) -> None:
    """Configure OTLP exporters for traces."""
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    if protocol == "grpc":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        span_exporter = OTLPSpanExporter(endpoint=endpoint)
    else:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        # HTTP endpoint needs the /v1/traces suffix
        span_exporter = OTLPSpanExporter(endpoint=endpoint.rstrip("/") + "/v1/traces")

    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))


def _configure_console_exporters(tracer_provider) -> None:
    """Configure console exporters for development."""
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

    tracer_provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))


def _configure_meter_provider(
    resource,
    endpoint: Optional[str],
    protocol: str,
    metrics_interval_ms: int,
) -> None:
    """Install the global MeterProvider that HabitMetrics records into."""
    from opentelemetry import metrics
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader

    if endpoint:
        if protocol == "grpc":
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
            metric_exporter = OTLPMetricExporter(endpoint=endpoint)
        else:
            from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
            metric_exporter = OTLPMetricExporter(endpoint=endpoint.rstrip("/") + "/v1/metrics")
    else:
        metric_exporter = ConsoleMetricExporter()

    reader = PeriodicExportingMetricReader(
        metric_exporter,
        export_interval_millis=metrics_interval_ms,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))


def _configure_auto_instrumentation(log_correlation: bool) -> None:
    """Instrument FastAPI, outgoing HTTPX calls (Supabase), and logging."""
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

    FastAPIInstrumentor().instrument()
    HTTPXClientInstrumentor().instrument()
    logger.debug("FastAPI and HTTPX auto-instrumentation enabled")

    # Trace ids in log records
    if log_correlation:
        from opentelemetry.instrumentation.logging import LoggingInstrumentor
        LoggingInstrumentor().instrument(set_logging_format=True)
        logger.debug("Logging auto-instrumentation enabled")


def shutdown_observability() -> None:
    """Flush and shut down the OpenTelemetry providers."""
    global _initialized

    if not _initialized:
        return

    try:
        from opentelemetry import metrics, trace

        tracer_provider = trace.get_tracer_provider()
        if hasattr(tracer_provider, "shutdown"):
            tracer_provider.shutdown()

        meter_provider = metrics.get_meter_provider()
        if hasattr(meter_provider, "shutdown"):
            meter_provider.shutdown()

        _initialized = False
        logger.info("OpenTelemetry shutdown complete")
    except Exception as e:
        logger.error("Error during OpenTelemetry shutdown: %s", e)
