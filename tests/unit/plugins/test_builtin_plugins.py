"""Unit tests for the built-in plugins."""

import logging

import pytest
from graphql import ExecutionResult, GraphQLError, parse
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

import envelope_core.plugins.builtin.metrics as metrics_plugin
from envelope_core import create_orchestrator
from envelope_core.plugins.builtin import (
    ErrorHandlerPlugin,
    ExtendContextPlugin,
    ImmediateIntrospectionPlugin,
    LoggingPlugin,
    MaskedErrorsPlugin,
    MetricsPlugin,
    SafeGraphQLError,
    SchemaPlugin,
    mask_error,
)
from envelope_core.plugins.builtin.immediate_introspection import IS_INTROSPECTION_KEY
from envelope_core.plugins.builtin.logging import describe_operation
from envelope_core.plugins.builtin.metrics import operation_attributes
from envelope_core.testing import Testkit, collect_async_iterator_values
from envelope_core.types import ExecutionArgs, SubscriptionArgs


def _raise_safe(_root, _info):
    raise SafeGraphQLError("Not allowed", extensions={"code": "FORBIDDEN"})


async def _stream(*items):
    for item in items:
        yield item


def _unexpected_error(message="db exploded"):
    return GraphQLError(message, original_error=RuntimeError(message))


# =============================================================================
# Masked errors
# =============================================================================


class TestMaskError:
    """Tests for mask_error."""

    def test_masks_unexpected_error(self):
        masked = mask_error(_unexpected_error())

        assert masked.message == "Unexpected error."
        assert masked.original_error is None

    def test_keeps_errors_without_original(self):
        error = GraphQLError("Cannot query field 'nope' on type 'Query'.")

        assert mask_error(error) is error

    def test_keeps_safe_errors(self):
        safe = SafeGraphQLError("Not allowed")
        error = GraphQLError(safe.message, original_error=safe)

        assert mask_error(error) is error

    def test_custom_message(self):
        assert mask_error(_unexpected_error(), "Oops").message == "Oops"


class TestMaskedErrorsPlugin:
    """Tests for MaskedErrorsPlugin."""

    @pytest.mark.asyncio
    async def test_masks_resolver_error_keeping_location_and_path(self, schema):
        result = await Testkit([MaskedErrorsPlugin()], schema).execute("{ fail }")

        (error,) = result.errors
        assert error.message == "Unexpected error."
        assert error.path == ["fail"]
        assert error.locations is not None
        assert result.data == {"fail": None}

    @pytest.mark.asyncio
    async def test_safe_error_passes_through(self, schema):
        schema.query_type.fields["fail"].resolve = _raise_safe

        result = await Testkit([MaskedErrorsPlugin()], schema).execute("{ fail }")

        (error,) = result.errors
        assert error.message == "Not allowed"
        assert error.extensions == {"code": "FORBIDDEN"}

    @pytest.mark.asyncio
    async def test_configured_message(self, schema):
        plugin = MaskedErrorsPlugin({"message": "Something went wrong"})

        result = await Testkit([plugin], schema).execute("{ fail }")

        assert result.errors[0].message == "Something went wrong"

    @pytest.mark.asyncio
    async def test_custom_format_error(self, schema):
        plugin = MaskedErrorsPlugin(format_error=lambda error: GraphQLError("custom"))

        result = await Testkit([plugin], schema).execute("{ fail }")

        assert result.errors[0].message == "custom"

    @pytest.mark.asyncio
    async def test_result_without_errors_untouched(self, schema, me):
        result = await Testkit([MaskedErrorsPlugin()], schema).execute("{ me { id name } }")

        assert result.errors is None
        assert result.data == {"me": me}

    @pytest.mark.asyncio
    async def test_masks_stream_items(self, schema):
        items = [
            ExecutionResult(data={"message": "ok"}),
            ExecutionResult(data=None, errors=[_unexpected_error()]),
        ]
        orchestrator = create_orchestrator(
            [MaskedErrorsPlugin()], subscribe=lambda args: _stream(*items)
        )

        stream = await orchestrator.subscribe(
            SubscriptionArgs(schema=schema, document=parse("subscription { message }"))
        )
        values = await collect_async_iterator_values(stream)

        assert values[0].errors is None
        assert values[1].errors[0].message == "Unexpected error."

    @pytest.mark.asyncio
    async def test_masks_mapping_results(self, schema):
        orchestrator = create_orchestrator(
            [MaskedErrorsPlugin()],
            execute=lambda args: {"data": None, "errors": [_unexpected_error()]},
        )

        result = await orchestrator.execute(ExecutionArgs(schema=schema, document=parse("{ fail }")))

        assert result["errors"][0].message == "Unexpected error."


# =============================================================================
# Error handler
# =============================================================================


class TestErrorHandlerPlugin:
    """Tests for ErrorHandlerPlugin."""

    @pytest.mark.asyncio
    async def test_called_with_errors_and_args(self, schema):
        calls = []
        plugin = ErrorHandlerPlugin(lambda errors, args: calls.append((errors, args)))

        await Testkit([plugin], schema).execute("{ fail }")

        (errors, args), = calls
        assert len(errors) == 1
        assert isinstance(args, ExecutionArgs)

    @pytest.mark.asyncio
    async def test_not_called_without_errors(self, schema):
        calls = []
        plugin = ErrorHandlerPlugin(lambda errors, args: calls.append(errors))

        await Testkit([plugin], schema).execute("{ me { id } }")

        assert calls == []

    @pytest.mark.asyncio
    async def test_async_handler(self, schema):
        calls = []

        async def handler(errors, args):
            calls.append(errors)

        await Testkit([ErrorHandlerPlugin(handler)], schema).execute("{ fail }")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_called_per_stream_item_with_errors(self, schema):
        calls = []
        items = [
            {"data": {"n": 1}},
            {"data": None, "errors": [GraphQLError("first")]},
            {"data": None, "errors": [GraphQLError("second")]},
        ]
        orchestrator = create_orchestrator(
            [ErrorHandlerPlugin(lambda errors, args: calls.append(errors[0].message))],
            execute=lambda args: _stream(*items),
        )

        stream = await orchestrator.execute(ExecutionArgs(schema=schema, document=parse("{ fail }")))
        await collect_async_iterator_values(stream)

        assert calls == ["first", "second"]


# =============================================================================
# Immediate introspection
# =============================================================================


async def _reject(context):
    raise RuntimeError("context factory rejected")


class TestImmediateIntrospectionPlugin:
    """Tests for ImmediateIntrospectionPlugin."""

    @pytest.mark.asyncio
    async def test_typename_only_skips_context_building(self, schema):
        testkit = Testkit([ImmediateIntrospectionPlugin(), ExtendContextPlugin(_reject)], schema)

        result = await testkit.execute("{ __typename }")

        assert result.errors is None
        assert result.data == {"__typename": "Query"}

    @pytest.mark.asyncio
    async def test_aliased_typename_skips_context_building(self, schema):
        testkit = Testkit([ImmediateIntrospectionPlugin(), ExtendContextPlugin(_reject)], schema)

        result = await testkit.execute("{ some: __typename }")

        assert result.data == {"some": "Query"}

    @pytest.mark.asyncio
    async def test_schema_introspection_skips_context_building(self, schema):
        testkit = Testkit([ImmediateIntrospectionPlugin(), ExtendContextPlugin(_reject)], schema)

        result = await testkit.execute("{ __schema { queryType { name } } }")

        assert result.data == {"__schema": {"queryType": {"name": "Query"}}}

    @pytest.mark.asyncio
    async def test_mixed_operation_builds_context(self, schema):
        testkit = Testkit([ImmediateIntrospectionPlugin(), ExtendContextPlugin(_reject)], schema)

        with pytest.raises(RuntimeError, match="context factory rejected"):
            await testkit.execute("{ __schema { aaa: __typename } me { id } }")

    @pytest.mark.asyncio
    async def test_marks_context_only_for_valid_documents(self, schema):
        orchestrator = create_orchestrator([SchemaPlugin(schema), ImmediateIntrospectionPlugin()])
        context = {}

        errors = await orchestrator.validate(context, schema, parse("{ __typename nope }"))

        assert errors
        assert IS_INTROSPECTION_KEY not in context

    @pytest.mark.asyncio
    async def test_marks_context_for_introspection(self, schema):
        orchestrator = create_orchestrator([ImmediateIntrospectionPlugin()])
        context = {}

        await orchestrator.validate(context, schema, parse("{ __type(name: \"User\") { name } }"))

        assert context[IS_INTROSPECTION_KEY] is True

    @pytest.mark.asyncio
    async def test_cached_validation_result_builds_context(self, schema):
        """A validation answered from a cache never walks the document."""

        class CachedValidation:
            def on_validate(self, payload):
                payload.set_result([])

        def resolve_me(_root, info):
            return {"id": info.context["user"], "name": "Cached"}

        schema.query_type.fields["me"].resolve = resolve_me
        testkit = Testkit(
            [
                CachedValidation(),
                ImmediateIntrospectionPlugin(),
                ExtendContextPlugin(lambda context: {"user": "u1"}),
            ],
            schema,
        )

        result = await testkit.execute("{ me { id } }")

        assert result.errors is None
        assert result.data == {"me": {"id": "u1"}}

    @pytest.mark.asyncio
    async def test_skipped_rules_leave_context_unmarked(self, schema):
        context = {}

        class IgnoreRules:
            def on_validate(self, payload):
                payload.set_validation_fn(lambda *_args, **_kwargs: [])

        orchestrator = create_orchestrator([IgnoreRules(), ImmediateIntrospectionPlugin()])

        errors = await orchestrator.validate(context, schema, parse("{ me { id } }"))

        assert errors == []
        assert IS_INTROSPECTION_KEY not in context


# =============================================================================
# Extend context
# =============================================================================


class TestExtendContextPlugin:
    """Tests for ExtendContextPlugin."""

    @pytest.mark.asyncio
    async def test_factory_receives_current_context(self, schema):
        seen = []

        def factory(context):
            seen.append(dict(context))
            return {"user": "u"}

        orchestrator = create_orchestrator([ExtendContextPlugin(factory)])
        context = await orchestrator.context_factory({"request": "r"})

        assert seen == [{"request": "r"}]
        assert context == {"request": "r", "user": "u"}

    @pytest.mark.asyncio
    async def test_context_reaches_resolvers(self, schema):
        def resolve_me(_root, info):
            return {"id": info.context["user_id"], "name": "From context"}

        schema.query_type.fields["me"].resolve = resolve_me
        testkit = Testkit([ExtendContextPlugin(lambda context: {"user_id": "42"})], schema)

        result = await testkit.execute("{ me { id name } }")

        assert result.data == {"me": {"id": "42", "name": "From context"}}


# =============================================================================
# Logging
# =============================================================================


LOGGER_NAME = "envelope_core.plugins.logging"


class TestLoggingPlugin:
    """Tests for LoggingPlugin."""

    @pytest.fixture(autouse=True)
    def _capture(self, caplog):
        caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
        self.caplog = caplog

    def _messages(self):
        return [r.getMessage() for r in self.caplog.records if r.name == LOGGER_NAME]

    @pytest.mark.asyncio
    async def test_logs_successful_execution(self, schema):
        await Testkit([LoggingPlugin()], schema).execute("query Me { me { id } }", operation_name="Me")

        messages = self._messages()
        assert messages[0] == "Execute query Me"
        assert messages[1].startswith("Execute query Me: SUCCESS")

    @pytest.mark.asyncio
    async def test_logs_failed_execution(self, schema):
        await Testkit([LoggingPlugin()], schema).execute("{ fail }")

        assert any("Execute query anonymous: FAILED" in m for m in self._messages())

    @pytest.mark.asyncio
    async def test_logs_variables_when_enabled(self, schema):
        plugin = LoggingPlugin({"include_variables": True})

        await Testkit([plugin], schema).execute(
            "query Greet($name: String!) { greeting(name: $name) }",
            variable_values={"name": "ada"},
        )

        assert "Execute query Greet variables={'name': 'ada'}" in self._messages()

    @pytest.mark.asyncio
    async def test_logs_parse_failure(self, schema):
        with pytest.raises(GraphQLError):
            await Testkit([LoggingPlugin()], schema).execute("{ me {")

        assert any(m.startswith("Parse failed:") for m in self._messages())

    @pytest.mark.asyncio
    async def test_logs_validation_failure(self, schema):
        await Testkit([LoggingPlugin()], schema).execute("{ nope }")

        assert any(m.startswith("Validation failed (1 errors)") for m in self._messages())

    @pytest.mark.asyncio
    async def test_skips_introspection_by_default(self, schema):
        await Testkit([LoggingPlugin()], schema).execute("{ __schema { queryType { name } } }")

        assert self._messages() == []

    @pytest.mark.asyncio
    async def test_logs_introspection_when_configured(self, schema):
        plugin = LoggingPlugin({"skip_introspection": False})

        await Testkit([plugin], schema).execute("{ __schema { queryType { name } } }")

        assert "Execute query anonymous" in self._messages()

    @pytest.mark.asyncio
    async def test_configured_level(self, schema):
        await Testkit([LoggingPlugin({"level": "debug"})], schema).execute("{ me { id } }")

        levels = {r.levelno for r in self.caplog.records if r.name == LOGGER_NAME}
        assert levels == {logging.DEBUG}

    @pytest.mark.asyncio
    async def test_logs_subscription_error(self, schema):
        async def failing(args):
            yield {"data": {"message": "hi"}}
            raise RuntimeError("broker gone")

        orchestrator = create_orchestrator([LoggingPlugin()], subscribe=failing)
        stream = await orchestrator.subscribe(
            SubscriptionArgs(schema=schema, document=parse("subscription Feed { message }"))
        )

        with pytest.raises(RuntimeError):
            await collect_async_iterator_values(stream)

        messages = self._messages()
        assert messages[0] == "Subscribe subscription Feed"
        assert "Subscription subscription Feed failed: broker gone" in messages

    def test_describe_operation(self):
        args = ExecutionArgs(schema=None, document=parse("mutation Save { me }"))

        assert describe_operation(args) == "mutation Save"

    def test_describe_unknown_operation(self):
        args = ExecutionArgs(
            schema=None, document=parse("query A { a } query B { b }"), operation_name="C"
        )

        assert describe_operation(args) == "unknown operation"


# =============================================================================
# Metrics
# =============================================================================


class TestMetricsPlugin:
    """Tests for MetricsPlugin."""

    @pytest.fixture(autouse=True)
    def _meter(self, monkeypatch):
        self.reader = InMemoryMetricReader()
        provider = MeterProvider(metric_readers=[self.reader])
        monkeypatch.setattr(metrics_plugin.metrics, "get_meter", provider.get_meter)

    def _points(self, name):
        data = self.reader.get_metrics_data()
        if data is None:
            return []
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        return list(metric.data.data_points)
        return []

    @pytest.mark.asyncio
    async def test_counts_operations(self, schema):
        testkit = Testkit([MetricsPlugin()], schema)

        await testkit.execute("query Me { me { id } }", operation_name="Me")
        await testkit.execute("query Me { me { id } }", operation_name="Me")

        (point,) = self._points("envelope_plugin_operations_total")
        assert point.value == 2
        assert dict(point.attributes) == {"operation_type": "query", "operation_name": "Me"}
        (duration,) = self._points("envelope_plugin_operation_duration_seconds")
        assert duration.count == 2

    @pytest.mark.asyncio
    async def test_counts_errors(self, schema):
        await Testkit([MetricsPlugin()], schema).execute("{ fail }")

        (point,) = self._points("envelope_plugin_errors_total")
        assert point.value == 1

    @pytest.mark.asyncio
    async def test_custom_prefix_without_histogram(self, schema):
        plugin = MetricsPlugin({"prefix": "api", "emit_histogram": False})

        await Testkit([plugin], schema).execute("{ me { id } }")

        assert self._points("api_operations_total")
        assert self._points("api_operation_duration_seconds") == []

    @pytest.mark.asyncio
    async def test_times_resolvers(self, schema):
        await Testkit([MetricsPlugin({"resolvers": True})], schema).execute("{ me { id } fail }")

        points = self._points("envelope_plugin_resolver_duration_seconds")
        by_field = {point.attributes["field"]: point.attributes["status"] for point in points}
        assert by_field["Query.me"] == "success"
        assert by_field["Query.fail"] == "error"
        assert by_field["User.id"] == "success"

    @pytest.mark.asyncio
    async def test_counts_subscriptions_and_stream_errors(self, schema):
        items = [{"data": {"message": "a"}}, {"data": None, "errors": [GraphQLError("x")]}]
        orchestrator = create_orchestrator([MetricsPlugin()], subscribe=lambda args: _stream(*items))

        stream = await orchestrator.subscribe(
            SubscriptionArgs(schema=schema, document=parse("subscription { message }"))
        )
        await collect_async_iterator_values(stream)

        (operations,) = self._points("envelope_plugin_operations_total")
        assert dict(operations.attributes)["operation_type"] == "subscription"
        (errors,) = self._points("envelope_plugin_errors_total")
        assert errors.value == 1

    def test_operation_attributes_anonymous(self):
        args = ExecutionArgs(schema=None, document=parse("{ me { id } }"))

        assert operation_attributes(args) == {
            "operation_type": "query",
            "operation_name": "anonymous",
        }
