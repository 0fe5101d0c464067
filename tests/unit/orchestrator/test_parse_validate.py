"""Unit tests for the parse and validate phases."""

import pytest
from graphql import (
    DocumentNode,
    GraphQLError,
    GraphQLSyntaxError,
    NoSchemaIntrospectionCustomRule,
    parse,
)

from envelope_core import EnvelopeError, create_orchestrator
from envelope_core.plugins import Plugin
from envelope_core.plugins.builtin import SchemaPlugin


class TestParse:
    """Tests for Orchestrator.parse."""

    @pytest.mark.asyncio
    async def test_default_parse(self):
        orchestrator = create_orchestrator([])

        document = await orchestrator.parse({}, "{ me { id } }")

        assert isinstance(document, DocumentNode)

    @pytest.mark.asyncio
    async def test_hooks_see_source_and_context_extensions(self):
        seen = []

        class First(Plugin):
            def on_parse(self, payload):
                payload.extend_context({"first": True})

        class Second(Plugin):
            def on_parse(self, payload):
                seen.append((payload.params.source, dict(payload.context)))

        context = {}
        await create_orchestrator([First(), Second()]).parse(context, "{ me { id } }")

        assert seen == [("{ me { id } }", {"first": True})]
        assert context == {"first": True}

    @pytest.mark.asyncio
    async def test_set_parse_fn_replaces_parser(self):
        calls = []

        def custom_parse(source, **options):
            calls.append((source, options))
            return parse(source)

        class CustomParser(Plugin):
            def on_parse(self, payload):
                payload.set_parse_fn(custom_parse)

        orchestrator = create_orchestrator([CustomParser()])
        await orchestrator.parse({}, "{ me { id } }", no_location=True)

        assert calls == [("{ me { id } }", {"no_location": True})]

    @pytest.mark.asyncio
    async def test_set_parsed_document_skips_parser(self):
        cached = parse("{ me { id } }")

        def never_parse(source, **options):
            raise AssertionError("parser should not run")

        class Cache(Plugin):
            def on_parse(self, payload):
                payload.set_parsed_document(cached)

        orchestrator = create_orchestrator([Cache()], parse=never_parse)

        assert await orchestrator.parse({}, "ignored") is cached

    @pytest.mark.asyncio
    async def test_after_hooks_receive_result_in_order(self):
        order = []

        class Observer(Plugin):
            def __init__(self, label):
                super().__init__()
                self.label = label

            def on_parse(self, payload):
                def after_parse(done):
                    order.append((self.label, isinstance(done.result, DocumentNode)))

                return after_parse

        await create_orchestrator([Observer("a"), Observer("b")]).parse({}, "{ me { id } }")

        assert order == [("a", True), ("b", True)]

    @pytest.mark.asyncio
    async def test_parse_error_raised_after_after_hooks(self):
        seen = []

        class Observer(Plugin):
            def on_parse(self, payload):
                return lambda done: seen.append(done.result)

        with pytest.raises(GraphQLSyntaxError):
            await create_orchestrator([Observer()]).parse({}, "{ me {")

        assert len(seen) == 1
        assert isinstance(seen[0], GraphQLSyntaxError)

    @pytest.mark.asyncio
    async def test_after_hook_can_recover_from_error(self):
        fallback = parse("{ __typename }")

        class Recover(Plugin):
            def on_parse(self, payload):
                def after_parse(done):
                    if isinstance(done.result, Exception):
                        done.replace_parse_result(fallback)

                return after_parse

        result = await create_orchestrator([Recover()]).parse({}, "{ broken")

        assert result is fallback

    @pytest.mark.asyncio
    async def test_parser_returning_none_raises(self):
        orchestrator = create_orchestrator([], parse=lambda source, **options: None)

        with pytest.raises(EnvelopeError) as exc_info:
            await orchestrator.parse({}, "{ me { id } }")
        assert exc_info.value.code == "PARSE_FAILED"

    @pytest.mark.asyncio
    async def test_async_parse_fn(self):
        async def async_parse(source, **options):
            return parse(source)

        document = await create_orchestrator([], parse=async_parse).parse({}, "{ me { id } }")

        assert isinstance(document, DocumentNode)


class TestValidate:
    """Tests for Orchestrator.validate."""

    @pytest.mark.asyncio
    async def test_valid_document(self, schema):
        orchestrator = create_orchestrator([SchemaPlugin(schema)])

        errors = await orchestrator.validate({}, schema, parse("{ me { id } }"))

        assert errors == []

    @pytest.mark.asyncio
    async def test_invalid_document(self, schema):
        orchestrator = create_orchestrator([SchemaPlugin(schema)])

        errors = await orchestrator.validate({}, schema, parse("{ nope }"))

        assert len(errors) == 1
        assert "nope" in errors[0].message

    @pytest.mark.asyncio
    async def test_add_validation_rule(self, schema):
        class NoIntrospection(Plugin):
            def on_validate(self, payload):
                payload.add_validation_rule(NoSchemaIntrospectionCustomRule)

        orchestrator = create_orchestrator([NoIntrospection()])

        errors = await orchestrator.validate({}, schema, parse("{ __schema { __typename } }"))
        standard_errors = await orchestrator.validate({}, schema, parse("{ nope }"))

        # Only __schema has an introspection type; __typename is a String
        assert len(errors) == 1
        assert "introspection" in errors[0].message.lower()
        # Standard rules still apply
        assert len(standard_errors) == 1

    @pytest.mark.asyncio
    async def test_set_result_skips_validation(self, schema):
        def never_validate(*args, **kwargs):
            raise AssertionError("validate should not run")

        class Cached(Plugin):
            def on_validate(self, payload):
                payload.set_result([])

        orchestrator = create_orchestrator([Cached()], validate=never_validate)

        assert await orchestrator.validate({}, schema, parse("{ nope }")) == []

    @pytest.mark.asyncio
    async def test_set_validation_fn(self, schema):
        custom_error = GraphQLError("custom")

        class Custom(Plugin):
            def on_validate(self, payload):
                payload.set_validation_fn(lambda schema, document: [custom_error])

        errors = await create_orchestrator([Custom()]).validate({}, schema, parse("{ me { id } }"))

        assert errors == [custom_error]

    @pytest.mark.asyncio
    async def test_after_hook_sees_validity_and_can_replace(self, schema):
        seen = []

        class Observer(Plugin):
            def on_validate(self, payload):
                def after_validate(done):
                    seen.append(done.valid)
                    done.set_result([])

                return after_validate

        errors = await create_orchestrator([Observer()]).validate({}, schema, parse("{ nope }"))

        assert seen == [False]
        assert errors == []

    @pytest.mark.asyncio
    async def test_after_hook_extends_context(self, schema):
        class Marker(Plugin):
            def on_validate(self, payload):
                return lambda done: done.extend_context({"validated": done.valid})

        context = {}
        await create_orchestrator([Marker()]).validate(context, schema, parse("{ me { id } }"))

        assert context == {"validated": True}

    @pytest.mark.asyncio
    async def test_max_errors_forwarded(self, schema):
        calls = []

        def recording_validate(schema, document, *args, **kwargs):
            calls.append(kwargs)
            return []

        orchestrator = create_orchestrator([], validate=recording_validate)
        await orchestrator.validate({}, schema, parse("{ me { id } }"), max_errors=5)

        assert calls == [{"max_errors": 5}]
