"""Unit tests for the orchestrator metrics schema."""

from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from envelope_core.telemetry import EnvelopeMetrics, MetricLabels
from envelope_core.telemetry.metrics import METRIC_PREFIX


class TestEnvelopeMetrics:
    """Tests for EnvelopeMetrics."""

    def setup_method(self):
        self.reader = InMemoryMetricReader()
        provider = MeterProvider(metric_readers=[self.reader])
        self.metrics = EnvelopeMetrics(provider.get_meter("test"))

    def _points(self, name):
        data = self.reader.get_metrics_data()
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        return list(metric.data.data_points)
        return []

    def test_metric_names_use_prefix(self):
        assert METRIC_PREFIX == "envelope"
        self.metrics.record_phase("parse", 0.01, MetricLabels.STATUS_SUCCESS)

        assert self._points("envelope_phase_executions_total")
        assert self._points("envelope_phase_duration_seconds")

    def test_record_phase_error_code_only_on_counter(self):
        """Error code is a counter attribute; the histogram is keyed by phase and status."""
        self.metrics.record_phase("execute", 0.2, MetricLabels.STATUS_ERROR, "ValueError")

        (counter,) = self._points("envelope_phase_executions_total")
        (histogram,) = self._points("envelope_phase_duration_seconds")
        assert dict(counter.attributes) == {
            "phase": "execute",
            "status": "error",
            "error_code": "ValueError",
        }
        assert dict(histogram.attributes) == {"phase": "execute", "status": "error"}
        assert histogram.count == 1

    def test_active_streams(self):
        self.metrics.record_stream_start("execute")
        self.metrics.record_stream_end("execute")

        (point,) = self._points("envelope_active_streams")
        assert point.value == 0
