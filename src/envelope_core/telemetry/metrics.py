"""Orchestrator metrics schema - OpenTelemetry conventions.

Metrics:
- envelope_phase_executions_total: phases run, by phase and status
- envelope_phase_duration_seconds: phase duration distribution
- envelope_active_streams: streamed results currently being consumed

All metrics use the 'envelope_' prefix.
"""

from dataclasses import dataclass

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, UpDownCounter

# Metric prefix for all orchestrator metrics
METRIC_PREFIX = "envelope"


@dataclass
class MetricLabels:
    """Standard metric labels/attributes."""

    PHASE = "phase"
    STATUS = "status"
    ERROR_CODE = "error_code"
    OPERATION_NAME = "operation_name"

    # Status values
    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"


class EnvelopeMetrics:
    """Phase-level metrics recorded when internal tracing is enabled."""

    def __init__(self, meter: metrics.Meter):
        """Initialize metrics.

        Args:
            meter: OpenTelemetry Meter instance
        """
        self._meter = meter

        self.phase_executions_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_phase_executions_total",
            description="Total number of phase executions",
            unit="1",
        )
        self.phase_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_phase_duration_seconds",
            description="Phase duration in seconds",
            unit="s",
        )
        self.active_streams: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_active_streams",
            description="Number of streamed results being consumed",
            unit="1",
        )

    def record_phase(
        self,
        phase: str,
        duration_seconds: float,
        status: str,
        error_code: str | None = None,
    ) -> None:
        """Record one phase execution.

        Args:
            phase: Phase name
            duration_seconds: Phase duration
            status: success or error
            error_code: Exception type name when status=error
        """
        attributes = {MetricLabels.PHASE: phase, MetricLabels.STATUS: status}
        if error_code:
            attributes[MetricLabels.ERROR_CODE] = error_code
        self.phase_executions_total.add(1, attributes)
        self.phase_duration_seconds.record(
            duration_seconds, {MetricLabels.PHASE: phase, MetricLabels.STATUS: status}
        )

    def record_stream_start(self, phase: str) -> None:
        self.active_streams.add(1, {MetricLabels.PHASE: phase})

    def record_stream_end(self, phase: str) -> None:
        self.active_streams.add(-1, {MetricLabels.PHASE: phase})
