"""Phase instrumentation used when ``enable_internal_tracing`` is on.

Each phase gets a span named ``envelope.<phase>`` that is current while the
phase runs, so log lines and spans started by plugins nest under it. Before
``setup_telemetry`` everything here is a no-op.
"""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, nullcontext
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from envelope_core.types import Phase

from .metrics import MetricLabels
from .setup import get_telemetry


@asynccontextmanager
async def instrument_phase(phase: Phase, **attributes: Any) -> AsyncIterator[dict[str, Any]]:
    """Span plus execution count and duration for one phase.

    Args:
        phase: Phase being run
        **attributes: Span attributes, prefixed with ``envelope.``; None values are dropped

    Yields:
        Outcome dict; ``status`` and ``error_code`` are filled in on failure
    """
    telemetry = get_telemetry() or {}
    tracer = telemetry.get("tracer")
    phase_metrics = telemetry.get("metrics")
    outcome: dict[str, Any] = {"status": MetricLabels.STATUS_SUCCESS, "error_code": None}

    span = None
    if tracer is not None:
        span_attributes = {f"envelope.{key}": value for key, value in attributes.items()}
        span_attributes["envelope.phase"] = phase.value
        span = tracer.start_span(
            f"envelope.{phase.value}",
            attributes={key: value for key, value in span_attributes.items() if value is not None},
        )

    started = time.perf_counter()
    scope = nullcontext()
    if span is not None:
        scope = trace.use_span(
            span, end_on_exit=False, record_exception=False, set_status_on_exception=False
        )
    try:
        with scope:
            yield outcome
    except Exception as e:
        outcome.update(status=MetricLabels.STATUS_ERROR, error_code=type(e).__name__)
        if span is not None:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
        raise
    finally:
        if phase_metrics is not None:
            phase_metrics.record_phase(
                phase=phase.value,
                duration_seconds=time.perf_counter() - started,
                status=outcome["status"],
                error_code=outcome["error_code"],
            )
        if span is not None:
            if outcome["status"] == MetricLabels.STATUS_SUCCESS:
                span.set_status(Status(StatusCode.OK))
            span.end()


def record_stream_start(phase: Phase) -> None:
    """Count a streamed result as active."""
    phase_metrics = (get_telemetry() or {}).get("metrics")
    if phase_metrics is not None:
        phase_metrics.record_stream_start(phase.value)


def record_stream_end(phase: Phase) -> None:
    """Count a streamed result as finished."""
    phase_metrics = (get_telemetry() or {}).get("metrics")
    if phase_metrics is not None:
        phase_metrics.record_stream_end(phase.value)
