"""Helpers for plugin authors."""

from collections.abc import Callable, Mapping
from typing import Any

from graphql import (
    BREAK,
    DocumentNode,
    ExecutionResult,
    FieldNode,
    GraphQLError,
    OperationDefinitionNode,
    Source,
    Visitor,
    visit,
)

from envelope_core.hooks import is_async_iterable, maybe_await
from envelope_core.types import OnExecuteDoneHookResult, OnNextPayload

INTROSPECTION_FIELD = "__schema"


class _IntrospectionFieldFinder(Visitor):
    def __init__(self) -> None:
        super().__init__()
        self.found = False

    def enter_field(self, node: FieldNode, *_args: Any) -> Any:
        if node.name.value == INTROSPECTION_FIELD:
            self.found = True
            return BREAK
        return None


def is_operation_definition(node: Any) -> bool:
    return isinstance(node, OperationDefinitionNode)


def is_introspection_operation(operation: OperationDefinitionNode) -> bool:
    """True if the operation selects ``__schema`` anywhere."""
    if not is_operation_definition(operation):
        return False
    finder = _IntrospectionFieldFinder()
    visit(operation, finder)
    return finder.found


def is_introspection_document(document: DocumentNode) -> bool:
    """True if any operation of the document is an introspection operation."""
    return any(
        is_introspection_operation(definition)
        for definition in document.definitions
        if is_operation_definition(definition)
    )


def is_introspection_operation_string(operation: str | Source) -> bool:
    """Cheap textual check for ``__schema`` before parsing."""
    body = operation if isinstance(operation, str) else operation.body
    return INTROSPECTION_FIELD in body


def get_result_errors(result: Any) -> list[GraphQLError]:
    """Errors of an ``ExecutionResult`` or a result mapping (empty if none)."""
    if isinstance(result, ExecutionResult):
        return list(result.errors or [])
    if isinstance(result, Mapping):
        return list(result.get("errors") or [])
    return []


def with_errors(result: Any, errors: list[GraphQLError]) -> Any:
    """Copy of ``result`` with its errors replaced, keeping its shape."""
    if isinstance(result, ExecutionResult):
        return ExecutionResult(data=result.data, errors=errors, extensions=result.extensions)
    return {**result, "errors": errors}


async def handle_stream_or_single_execution_result(
    payload: Any,
    handler: Callable[[OnNextPayload], Any],
) -> OnExecuteDoneHookResult | None:
    """Apply ``handler`` to a single result now, or to every item of a stream.

    Meant to be returned from ``on_execute_done`` / ``on_subscribe_result``:

        def on_execute_done(payload):
            return handle_stream_or_single_execution_result(payload, mask)

    Args:
        payload: Done-hook payload with ``args``, ``result`` and ``set_result``
        handler: Called with an ``OnNextPayload``; may be async

    Returns:
        Hook result registering ``handler`` as ``on_next`` for streams,
        None for single results
    """
    if is_async_iterable(payload.result):
        return OnExecuteDoneHookResult(on_next=handler)
    await maybe_await(
        handler(
            OnNextPayload(args=payload.args, result=payload.result, set_result=payload.set_result)
        )
    )
    return None
