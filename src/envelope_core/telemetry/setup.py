"""OpenTelemetry provider setup.

``setup_telemetry`` builds a MeterProvider (Prometheus reader plus any
extra readers) and a TracerProvider (optional OTLP export plus any extra
span processors) once per process, and keeps them in module state that
``get_telemetry`` hands to the instrumentation helpers.
"""

import logging
from collections.abc import Sequence
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from envelope_core.config.models import OTLPConfig, TelemetryConfig

from .metrics import EnvelopeMetrics

logger = logging.getLogger(__name__)

_telemetry: dict[str, Any] | None = None


def _otlp_span_exporter(otlp: OTLPConfig):
    # Needs the ``otlp`` extra (opentelemetry-exporter-otlp)
    headers = otlp.headers or None
    if otlp.protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(endpoint=f"{otlp.endpoint.rstrip('/')}/v1/traces", headers=headers)

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    return OTLPSpanExporter(endpoint=otlp.endpoint, insecure=otlp.insecure, headers=headers)


def _meter_provider(
    config: TelemetryConfig, resource: Resource, extra_readers: Sequence[MetricReader]
) -> MeterProvider:
    readers = [*extra_readers]
    if config.metrics.prometheus_enabled:
        readers.append(PrometheusMetricReader())
    provider = MeterProvider(metric_readers=readers, resource=resource)
    metrics.set_meter_provider(provider)
    return provider


def _tracer_provider(
    config: TelemetryConfig, resource: Resource, extra_processors: Sequence[SpanProcessor]
) -> TracerProvider:
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(config.tracing.sample_ratio)),
    )
    for processor in extra_processors:
        provider.add_span_processor(processor)
    if config.otlp.enabled:
        logger.info(f"Exporting spans to {config.otlp.endpoint} over {config.otlp.protocol}")
        provider.add_span_processor(BatchSpanProcessor(_otlp_span_exporter(config.otlp)))
    trace.set_tracer_provider(provider)
    return provider


def setup_telemetry(
    config: TelemetryConfig | None = None,
    metric_readers: Sequence[MetricReader] = (),
    span_processors: Sequence[SpanProcessor] = (),
) -> dict[str, Any]:
    """Initialize OpenTelemetry once; later calls return the same state.

    Args:
        config: Telemetry settings (defaults if None)
        metric_readers: Extra readers, e.g. ``InMemoryMetricReader`` in tests
        span_processors: Extra span processors, e.g. ``SimpleSpanProcessor``

    Returns:
        Dict with ``meter``, ``tracer``, ``metrics`` (EnvelopeMetrics), ``config``
        and the two providers; the entries are None for disabled parts
    """
    global _telemetry

    if _telemetry is not None:
        return _telemetry

    config = config or TelemetryConfig()
    state: dict[str, Any] = dict.fromkeys(
        ("meter", "tracer", "metrics", "meter_provider", "tracer_provider")
    )
    state["config"] = config

    if config.enabled:
        resource = Resource.create(
            {
                **config.resource_attributes,
                SERVICE_NAME: config.service_name,
                SERVICE_VERSION: config.service_version,
            }
        )
        if config.metrics.enabled:
            meter_provider = _meter_provider(config, resource, metric_readers)
            meter = meter_provider.get_meter(config.service_name, config.service_version)
            state.update(meter_provider=meter_provider, meter=meter, metrics=EnvelopeMetrics(meter))
        if config.tracing.enabled:
            tracer_provider = _tracer_provider(config, resource, span_processors)
            state.update(
                tracer_provider=tracer_provider,
                tracer=tracer_provider.get_tracer(config.service_name, config.service_version),
            )

    logger.debug(
        f"Telemetry initialized for {config.service_name} "
        f"(metrics={state['meter'] is not None}, tracing={state['tracer'] is not None})"
    )
    _telemetry = state
    return _telemetry


def get_telemetry() -> dict[str, Any] | None:
    """Current telemetry state, or None before ``setup_telemetry``."""
    return _telemetry


def reset_telemetry() -> None:
    """Forget the telemetry state so the next setup builds new providers."""
    global _telemetry
    _telemetry = None
