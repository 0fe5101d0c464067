"""Test helpers for plugin authors.

    testkit = Testkit([MyPlugin()], schema)
    result = await testkit.execute("{ me { id } }")
    assert_single_execution_value(result)
"""

from collections import defaultdict
from collections.abc import AsyncIterable, Iterable
from typing import Any

from graphql import (
    DocumentNode,
    ExecutionResult,
    GraphQLSchema,
    OperationType,
    get_operation_ast,
)

from envelope_core.hooks import is_async_iterable
from envelope_core.orchestrator import envelop
from envelope_core.plugins import Plugin
from envelope_core.plugins.builtin import SchemaPlugin
from envelope_core.types import (
    Context,
    ExecutionArgs,
    OnExecuteHookResult,
    OnSubscribeHookResult,
    SubscriptionArgs,
)


async def collect_async_iterator_values(stream: AsyncIterable[Any]) -> list[Any]:
    """Drain a stream into a list."""
    return [item async for item in stream]


def assert_single_execution_value(result: Any) -> None:
    if is_async_iterable(result):
        raise AssertionError("Expected a single result, got a stream")


def assert_stream_execution_value(result: Any) -> None:
    if not is_async_iterable(result):
        raise AssertionError(f"Expected a stream, got {type(result).__name__}")


class Testkit:
    """Runs operations through the whole pipeline.

    Executes parse, validate, context building and then execute, or
    subscribe for subscription operations.
    """

    __test__ = False

    def __init__(self, plugins: Iterable[Any], schema: GraphQLSchema | None = None):
        plugins = list(plugins)
        if schema is not None:
            plugins.insert(0, SchemaPlugin(schema))
        self.get_enveloped = envelop(plugins)

    @property
    def plugins(self) -> tuple[Any, ...]:
        return self.get_enveloped.plugins

    async def execute(
        self,
        operation: str | DocumentNode,
        variable_values: dict[str, Any] | None = None,
        initial_context: Context | None = None,
        operation_name: str | None = None,
    ) -> Any:
        """Run one operation.

        Returns:
            ExecutionResult with the validation errors if validation failed,
            otherwise the execute or subscribe result
        """
        enveloped = self.get_enveloped({} if initial_context is None else initial_context)
        if isinstance(operation, DocumentNode):
            document = operation
        else:
            document = await enveloped.parse(operation)

        errors = await enveloped.validate(enveloped.schema, document)
        if errors:
            return ExecutionResult(data=None, errors=errors)

        context = await enveloped.context_factory()
        operation_ast = get_operation_ast(document, operation_name)
        if operation_ast is not None and operation_ast.operation == OperationType.SUBSCRIPTION:
            return await enveloped.subscribe(
                SubscriptionArgs(
                    schema=enveloped.schema,
                    document=document,
                    context_value=context,
                    variable_values=variable_values,
                    operation_name=operation_name,
                )
            )
        return await enveloped.execute(
            ExecutionArgs(
                schema=enveloped.schema,
                document=document,
                context_value=context,
                variable_values=variable_values,
                operation_name=operation_name,
            )
        )


class SpiedPlugin(Plugin):
    """Records the payload of every hook and after-callback it receives.

    ``calls`` maps a hook name (``"on_parse"``, ``"after_parse"``, ...) to the
    payloads it was called with, in call order.
    """

    name = "spied"

    def __init__(self) -> None:
        super().__init__()
        self.calls: dict[str, list[Any]] = defaultdict(list)

    def count(self, hook_name: str) -> int:
        return len(self.calls[hook_name])

    def _recorder(self, hook_name: str):
        return lambda payload: self.calls[hook_name].append(payload)

    def on_plugin_init(self, payload: Any) -> None:
        self.calls["on_plugin_init"].append(payload)

    def on_schema_change(self, payload: Any) -> None:
        self.calls["on_schema_change"].append(payload)

    def on_enveloped(self, payload: Any) -> None:
        self.calls["on_enveloped"].append(payload)

    def on_parse(self, payload: Any):
        self.calls["on_parse"].append(payload)
        return self._recorder("after_parse")

    def on_validate(self, payload: Any):
        self.calls["on_validate"].append(payload)
        return self._recorder("after_validate")

    def on_context_building(self, payload: Any):
        self.calls["on_context_building"].append(payload)
        return self._recorder("after_context_building")

    def on_execute(self, payload: Any) -> OnExecuteHookResult:
        self.calls["on_execute"].append(payload)
        return OnExecuteHookResult(on_execute_done=self._recorder("after_execute"))

    def on_subscribe(self, payload: Any) -> OnSubscribeHookResult:
        self.calls["on_subscribe"].append(payload)
        return OnSubscribeHookResult(
            on_subscribe_result=self._recorder("after_subscribe"),
            on_subscribe_error=self._recorder("subscribe_error"),
        )
