"""Plugin that hides unexpected error messages from clients."""

from collections.abc import Callable
from typing import Any

from graphql import GraphQLError

from envelope_core.types import (
    OnExecuteHookResult,
    OnExecutePayload,
    OnNextPayload,
    OnSubscribeHookResult,
    OnSubscribePayload,
)
from envelope_core.utils import (
    get_result_errors,
    handle_stream_or_single_execution_result,
    with_errors,
)

from ..base import Plugin

DEFAULT_ERROR_MESSAGE = "Unexpected error."

FormatError = Callable[[GraphQLError], GraphQLError]


class SafeGraphQLError(GraphQLError):
    """Error whose message is safe to show to clients.

    Raise it from a resolver to bypass masking.
    """

    def __init__(self, message: str, extensions: dict[str, Any] | None = None):
        super().__init__(message, extensions=extensions)


def mask_error(error: GraphQLError, message: str = DEFAULT_ERROR_MESSAGE) -> GraphQLError:
    """Replace errors raised by unexpected exceptions with a generic one.

    Errors without an original error (syntax, validation) and errors caused
    by a ``SafeGraphQLError`` are returned unchanged. Location and path of the
    masked error are kept.
    """
    original = error.original_error
    if original is None or isinstance(original, SafeGraphQLError):
        return error
    return GraphQLError(
        message,
        nodes=error.nodes,
        source=error.source,
        positions=error.positions,
        path=error.path,
    )


class MaskedErrorsPlugin(Plugin):
    """Masks execution and subscription errors.

    Configuration options:
        message: Replacement message. Default: "Unexpected error."
    """

    name = "masked_errors"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        format_error: FormatError | None = None,
    ):
        super().__init__(config)
        message = self.config.get("message", DEFAULT_ERROR_MESSAGE)
        self._format_error = format_error or (lambda error: mask_error(error, message))

    def _handle_result(self, payload: OnNextPayload) -> None:
        errors = get_result_errors(payload.result)
        if errors:
            payload.set_result(
                with_errors(payload.result, [self._format_error(e) for e in errors])
            )

    def _on_done(self, payload: Any) -> Any:
        return handle_stream_or_single_execution_result(payload, self._handle_result)

    def on_execute(self, payload: OnExecutePayload) -> OnExecuteHookResult:
        return OnExecuteHookResult(on_execute_done=self._on_done)

    def on_subscribe(self, payload: OnSubscribePayload) -> OnSubscribeHookResult:
        return OnSubscribeHookResult(on_subscribe_result=self._on_done)
