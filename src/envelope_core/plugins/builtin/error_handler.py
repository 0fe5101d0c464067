"""Plugin that reports execution errors to a callback."""

from collections.abc import Callable
from typing import Any

from graphql import GraphQLError

from envelope_core.hooks import maybe_await
from envelope_core.types import ExecutionArgs, OnExecuteHookResult, OnExecutePayload, OnNextPayload
from envelope_core.utils import get_result_errors, handle_stream_or_single_execution_result

from ..base import Plugin

ErrorHandler = Callable[[list[GraphQLError], ExecutionArgs], Any]


class ErrorHandlerPlugin(Plugin):
    """Calls ``handler(errors, args)`` for every result that has errors.

    Covers single results and every item of a streamed execution.
    """

    name = "error_handler"

    def __init__(self, handler: ErrorHandler):
        super().__init__()
        self._handler = handler

    async def _handle_result(self, payload: OnNextPayload) -> None:
        errors = get_result_errors(payload.result)
        if errors:
            await maybe_await(self._handler(errors, payload.args))

    def on_execute(self, payload: OnExecutePayload) -> OnExecuteHookResult:
        return OnExecuteHookResult(
            on_execute_done=lambda done: handle_stream_or_single_execution_result(
                done, self._handle_result
            )
        )
