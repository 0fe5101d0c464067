"""Unit tests for plugin author helpers."""

import pytest
from graphql import ExecutionResult, GraphQLError, Source, parse

from envelope_core.testing import (
    assert_single_execution_value,
    assert_stream_execution_value,
    collect_async_iterator_values,
)
from envelope_core.types import (
    ExecutionArgs,
    OnExecuteDoneHookResult,
    OnExecuteDonePayload,
    SubscriptionArgs,
)
from envelope_core.utils import (
    get_result_errors,
    handle_stream_or_single_execution_result,
    is_introspection_document,
    is_introspection_operation,
    is_introspection_operation_string,
    is_operation_definition,
    with_errors,
)


async def _stream(*items):
    for item in items:
        yield item


class TestIntrospectionDetection:
    """Tests for introspection helpers."""

    def test_schema_selection(self):
        document = parse("{ __schema { queryType { name } } }")

        assert is_introspection_document(document)
        assert is_introspection_operation(document.definitions[0])

    def test_nested_schema_selection(self):
        document = parse(
            "query Q { me { id } ...F } fragment F on Query { __schema { types { name } } }"
        )

        # Fragments are not followed
        assert not is_introspection_document(document)

    def test_regular_query(self):
        assert not is_introspection_document(parse("{ me { id } }"))

    def test_typename_is_not_schema_introspection(self):
        assert not is_introspection_document(parse("{ __typename }"))

    def test_operation_definition(self):
        document = parse("query A { a } fragment F on Query { a }")

        assert is_operation_definition(document.definitions[0])
        assert not is_operation_definition(document.definitions[1])
        assert not is_introspection_operation(document.definitions[1])

    def test_operation_string(self):
        assert is_introspection_operation_string("{ __schema { types { name } } }")
        assert is_introspection_operation_string(Source("{ __schema { types { name } } }"))
        assert not is_introspection_operation_string("{ me { id } }")


class TestResultHelpers:
    """Tests for result error helpers."""

    def test_errors_of_execution_result(self):
        error = GraphQLError("x")

        assert get_result_errors(ExecutionResult(data=None, errors=[error])) == [error]
        assert get_result_errors(ExecutionResult(data={})) == []

    def test_errors_of_mapping(self):
        error = GraphQLError("x")

        assert get_result_errors({"errors": [error]}) == [error]
        assert get_result_errors({"data": {}}) == []

    def test_errors_of_other_values(self):
        assert get_result_errors(None) == []

    def test_with_errors_keeps_execution_result_shape(self):
        result = ExecutionResult(data={"a": 1}, extensions={"cost": 3})
        error = GraphQLError("x")

        replaced = with_errors(result, [error])

        assert isinstance(replaced, ExecutionResult)
        assert replaced.data == {"a": 1}
        assert replaced.extensions == {"cost": 3}
        assert replaced.errors == [error]
        assert result.errors is None

    def test_with_errors_keeps_mapping_shape(self):
        result = {"data": {"a": 1}, "errors": [GraphQLError("old")]}
        error = GraphQLError("new")

        assert with_errors(result, [error]) == {"data": {"a": 1}, "errors": [error]}


class TestHandleStreamOrSingleResult:
    """Tests for handle_stream_or_single_execution_result."""

    @pytest.mark.asyncio
    async def test_single_result_handled_now(self):
        seen = []
        args = ExecutionArgs(schema=None, document=parse("{ a }"))
        replaced = ExecutionResult(data={"replaced": True})
        result_box = []
        payload = OnExecuteDonePayload(
            args=args, result=ExecutionResult(data={}), set_result=result_box.append
        )

        def handler(item):
            seen.append(item.args)
            item.set_result(replaced)

        outcome = await handle_stream_or_single_execution_result(payload, handler)

        assert outcome is None
        assert seen == [args]
        assert result_box == [replaced]

    @pytest.mark.asyncio
    async def test_async_handler(self):
        seen = []

        async def handler(item):
            seen.append(item.result)

        payload = OnExecuteDonePayload(
            args=ExecutionArgs(schema=None, document=parse("{ a }")),
            result={"data": {}},
            set_result=lambda value: None,
        )

        await handle_stream_or_single_execution_result(payload, handler)

        assert seen == [{"data": {}}]

    @pytest.mark.asyncio
    async def test_stream_registers_on_next(self):
        def handler(item):
            raise AssertionError("not called for streams")

        payload = OnExecuteDonePayload(
            args=SubscriptionArgs(schema=None, document=parse("subscription { a }")),
            result=_stream(1, 2),
            set_result=lambda value: None,
        )

        outcome = await handle_stream_or_single_execution_result(payload, handler)

        assert outcome == OnExecuteDoneHookResult(on_next=handler)


class TestTestingHelpers:
    """Tests for testing assertions."""

    @pytest.mark.asyncio
    async def test_collect_values(self):
        assert await collect_async_iterator_values(_stream(1, 2, 3)) == [1, 2, 3]

    def test_assert_single_value(self):
        assert_single_execution_value(ExecutionResult(data={}))
        with pytest.raises(AssertionError):
            assert_single_execution_value(_stream())

    def test_assert_stream_value(self):
        assert_stream_execution_value(_stream())
        with pytest.raises(AssertionError):
            assert_stream_execution_value(ExecutionResult(data={}))
