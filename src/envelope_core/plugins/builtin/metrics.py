"""Metrics plugin.

This plugin emits OpenTelemetry metrics for operations and, optionally, for
every resolver call.
"""

import time
from typing import Any

from graphql import get_operation_ast
from opentelemetry import metrics

from envelope_core.hooks import is_async_iterable
from envelope_core.types import (
    AfterResolverPayload,
    OnExecuteDoneHookResult,
    OnExecuteDonePayload,
    OnExecuteHookResult,
    OnExecutePayload,
    OnNextPayload,
    OnResolverCalledPayload,
    OnSubscribeHookResult,
    OnSubscribePayload,
    OnSubscribeResultHookResult,
    OnSubscribeResultPayload,
    OperationArgs,
)
from envelope_core.utils import get_result_errors

from ..base import Plugin


def operation_attributes(args: OperationArgs) -> dict[str, str]:
    operation = get_operation_ast(args.document, args.operation_name)
    if operation is None:
        return {"operation_type": "unknown", "operation_name": "unknown"}
    return {
        "operation_type": operation.operation.value,
        "operation_name": operation.name.value if operation.name else "anonymous",
    }


class MetricsPlugin(Plugin):
    """Plugin that emits metrics for operation execution.

    Configuration options:
        prefix: Metric name prefix. Default: envelope_plugin
        emit_histogram: Whether to emit duration histograms. Default: True
        resolvers: Whether to time every resolver call. Default: False
    """

    name = "metrics"

    def __init__(self, config: dict[str, Any] | None = None):
        super().__init__(config)
        self._prefix = self.config.get("prefix", "envelope_plugin")
        self._emit_histogram = self.config.get("emit_histogram", True)
        self._time_resolvers = self.config.get("resolvers", False)

        self._meter = metrics.get_meter(__name__)
        self._operation_counter = self._meter.create_counter(
            f"{self._prefix}_operations_total",
            description="Total operations executed or subscribed",
        )
        self._error_counter = self._meter.create_counter(
            f"{self._prefix}_errors_total",
            description="Total results carrying errors",
        )
        self._operation_duration = None
        self._resolver_duration = None
        if self._emit_histogram:
            self._operation_duration = self._meter.create_histogram(
                f"{self._prefix}_operation_duration_seconds",
                description="Execute phase duration",
                unit="s",
            )
            if self._time_resolvers:
                self._resolver_duration = self._meter.create_histogram(
                    f"{self._prefix}_resolver_duration_seconds",
                    description="Resolver duration",
                    unit="s",
                )

    def _count_errors(self, result: Any, attributes: dict[str, str]) -> None:
        errors = get_result_errors(result)
        if errors:
            self._error_counter.add(len(errors), attributes)

    def _time_resolver(self, payload: OnResolverCalledPayload):
        """Time one resolver call."""
        start_time = time.time()
        attributes = {"field": f"{payload.info.parent_type.name}.{payload.info.field_name}"}

        def after_resolver(done: AfterResolverPayload) -> None:
            attributes["status"] = "error" if isinstance(done.result, Exception) else "success"
            self._resolver_duration.record(time.time() - start_time, attributes)

        return after_resolver

    def on_execute(self, payload: OnExecutePayload) -> OnExecuteHookResult:
        """Count the operation and time it."""
        attributes = operation_attributes(payload.args)
        self._operation_counter.add(1, attributes)
        start_time = time.time()

        def on_next(item: OnNextPayload) -> None:
            self._count_errors(item.result, attributes)

        def on_execute_done(done: OnExecuteDonePayload):
            if self._operation_duration is not None:
                self._operation_duration.record(time.time() - start_time, attributes)
            if is_async_iterable(done.result):
                return OnExecuteDoneHookResult(on_next=on_next)
            self._count_errors(done.result, attributes)
            return None

        return OnExecuteHookResult(
            on_execute_done=on_execute_done,
            on_resolver_called=(
                self._time_resolver if self._resolver_duration is not None else None
            ),
        )

    def on_subscribe(self, payload: OnSubscribePayload) -> OnSubscribeHookResult:
        """Count the subscription."""
        attributes = operation_attributes(payload.args)
        self._operation_counter.add(1, attributes)

        def on_next(item: OnNextPayload) -> None:
            self._count_errors(item.result, attributes)

        def on_subscribe_result(done: OnSubscribeResultPayload):
            if is_async_iterable(done.result):
                return OnSubscribeResultHookResult(on_next=on_next)
            self._count_errors(done.result, attributes)
            return None

        return OnSubscribeHookResult(
            on_subscribe_result=on_subscribe_result,
            on_resolver_called=(
                self._time_resolver if self._resolver_duration is not None else None
            ),
        )
