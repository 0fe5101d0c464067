"""Orchestrator configuration."""

from .loader import (
    ConfigLoader,
    deep_merge,
    load_config,
    resolve_env_vars,
)
from .models import (
    EnvelopeConfig,
    LoggingConfig,
    OTLPConfig,
    PluginDefinition,
    TelemetryConfig,
    TelemetryMetricsConfig,
    TracingConfig,
)

__all__ = [
    # Loader
    "ConfigLoader",
    "load_config",
    "resolve_env_vars",
    "deep_merge",
    # Models
    "EnvelopeConfig",
    "LoggingConfig",
    "PluginDefinition",
    "TelemetryConfig",
    "TelemetryMetricsConfig",
    "TracingConfig",
    "OTLPConfig",
]
