"""Telemetry - OpenTelemetry-based observability."""

from .instrumentation import instrument_phase, record_stream_end, record_stream_start
from .logging import StructuredLogFormatter, configure_logging, reset_logging
from .metrics import EnvelopeMetrics, MetricLabels
from .setup import get_telemetry, reset_telemetry, setup_telemetry

__all__ = [
    # Metrics
    "EnvelopeMetrics",
    "MetricLabels",
    # Setup
    "setup_telemetry",
    "get_telemetry",
    "reset_telemetry",
    # Instrumentation
    "instrument_phase",
    "record_stream_start",
    "record_stream_end",
    # Logging
    "StructuredLogFormatter",
    "configure_logging",
    "reset_logging",
]
