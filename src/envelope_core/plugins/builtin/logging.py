"""Logging plugin.

This plugin logs parse, validate, execute and subscribe events for debugging
and auditing.
"""

import logging
import time
from typing import Any

from graphql import GraphQLError, get_operation_ast

from envelope_core.hooks import is_async_iterable
from envelope_core.types import (
    OnExecuteDonePayload,
    OnExecuteHookResult,
    OnExecutePayload,
    OnParseDonePayload,
    OnParsePayload,
    OnSubscribeErrorPayload,
    OnSubscribeHookResult,
    OnSubscribePayload,
    OnSubscribeResultPayload,
    OnValidateDonePayload,
    OnValidatePayload,
    OperationArgs,
)
from envelope_core.utils import get_result_errors, is_introspection_document

from ..base import Plugin


def describe_operation(args: OperationArgs) -> str:
    """``<type> <name>`` of the operation selected by the arguments."""
    operation = get_operation_ast(args.document, args.operation_name)
    if operation is None:
        return "unknown operation"
    name = operation.name.value if operation.name else "anonymous"
    return f"{operation.operation.value} {name}"


class LoggingPlugin(Plugin):
    """Plugin that logs request processing events.

    Configuration options:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
        include_variables: Whether to log variable values. Default: False
        skip_introspection: Whether to skip introspection operations. Default: True
        logger_name: Name of the logger to use. Default: envelope_core.plugins.logging
    """

    name = "logging"

    def __init__(self, config: dict[str, Any] | None = None):
        super().__init__(config)
        self._level = getattr(
            logging, self.config.get("level", "INFO").upper(), logging.INFO
        )
        self._include_variables = self.config.get("include_variables", False)
        self._skip_introspection = self.config.get("skip_introspection", True)
        logger_name = self.config.get("logger_name", "envelope_core.plugins.logging")
        self._logger = logging.getLogger(logger_name)

    def on_parse(self, payload: OnParsePayload):
        """Log parse failures."""

        def after_parse(done: OnParseDonePayload) -> None:
            if isinstance(done.result, Exception):
                self._logger.log(self._level, f"Parse failed: {done.result}")

        return after_parse

    def on_validate(self, payload: OnValidatePayload):
        """Log validation failures."""

        def after_validate(done: OnValidateDonePayload) -> None:
            if not done.valid:
                messages = "; ".join(error.message for error in done.result)
                self._logger.log(
                    self._level,
                    f"Validation failed ({len(done.result)} errors): {messages}",
                )

        return after_validate

    def _skip(self, args: OperationArgs) -> bool:
        return self._skip_introspection and is_introspection_document(args.document)

    def on_execute(self, payload: OnExecutePayload) -> OnExecuteHookResult | None:
        """Log execution start and result."""
        if self._skip(payload.args):
            return None

        operation = describe_operation(payload.args)
        msg = f"Execute {operation}"
        if self._include_variables:
            msg += f" variables={payload.args.variable_values}"
        self._logger.log(self._level, msg)
        start_time = time.time()

        def on_execute_done(done: OnExecuteDonePayload) -> None:
            duration_ms = int((time.time() - start_time) * 1000)
            if is_async_iterable(done.result):
                self._logger.log(self._level, f"Execute {operation}: STREAM ({duration_ms}ms)")
                return
            self._log_result(f"Execute {operation}", get_result_errors(done.result), duration_ms)

        return OnExecuteHookResult(on_execute_done=on_execute_done)

    def on_subscribe(self, payload: OnSubscribePayload) -> OnSubscribeHookResult | None:
        """Log subscription start, setup result and source errors."""
        if self._skip(payload.args):
            return None

        operation = describe_operation(payload.args)
        self._logger.log(self._level, f"Subscribe {operation}")

        def on_subscribe_result(done: OnSubscribeResultPayload) -> None:
            if not is_async_iterable(done.result):
                self._log_result(f"Subscribe {operation}", get_result_errors(done.result), 0)

        def on_subscribe_error(error_payload: OnSubscribeErrorPayload) -> None:
            self._logger.error(f"Subscription {operation} failed: {error_payload.error}")

        return OnSubscribeHookResult(
            on_subscribe_result=on_subscribe_result,
            on_subscribe_error=on_subscribe_error,
        )

    def _log_result(self, prefix: str, errors: list[GraphQLError], duration_ms: int) -> None:
        status = "FAILED" if errors else "SUCCESS"
        msg = f"{prefix}: {status} ({duration_ms}ms)"
        if errors:
            msg += f" errors={[error.message for error in errors]}"
        self._logger.log(self._level, msg)
