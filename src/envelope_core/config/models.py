"""Configuration dataclasses, mirroring the layout of ``envelope.yaml``.

    plugins:
      - name: masked_errors
        config: {message: "Something went wrong"}
      - name: audit
        type: file
        path: ./plugins/audit.py
    enable_internal_tracing: true
    logging: {level: INFO, format: json}
    telemetry:
      service_name: my-api
      otlp: {enabled: true, endpoint: "http://collector:4317"}
"""

from dataclasses import dataclass, field
from typing import Any

from envelope_core.types import LogFormat


@dataclass
class PluginDefinition:
    """One entry of ``plugins``; list order is hook invocation order."""

    name: str
    type: str = "builtin"  # builtin | file | package
    path: str | None = None
    package: str | None = None
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: LogFormat = LogFormat.JSON


@dataclass
class OTLPConfig:
    """Span export to an OpenTelemetry collector.

    ``protocol`` is ``grpc`` (endpoint used as is) or ``http`` (``/v1/traces``
    is appended to the endpoint).
    """

    enabled: bool = False
    endpoint: str = "http://localhost:4317"
    protocol: str = "grpc"
    insecure: bool = True
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class TelemetryMetricsConfig:
    enabled: bool = True
    prometheus_enabled: bool = True


@dataclass
class TracingConfig:
    """Span recording; ``sample_ratio`` applies to root spans only."""

    enabled: bool = True
    sample_ratio: float = 1.0


@dataclass
class TelemetryConfig:
    """OpenTelemetry resource and provider settings."""

    enabled: bool = True
    service_name: str = "envelope"
    service_version: str = "0.1.0"
    resource_attributes: dict[str, str] = field(default_factory=dict)
    metrics: TelemetryMetricsConfig = field(default_factory=TelemetryMetricsConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    otlp: OTLPConfig = field(default_factory=OTLPConfig)


@dataclass
class EnvelopeConfig:
    """Root of ``envelope.yaml``."""

    plugins: list[PluginDefinition] = field(default_factory=list)
    enable_internal_tracing: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
