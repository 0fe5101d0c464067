"""Plugin orchestrator.

Owns the frozen plugin list, the schema manager and the default phase
functions, and runs every request phase through the plugins' hooks:

    orchestrator = create_orchestrator([SchemaPlugin(schema), MyPlugin()])
    context = orchestrator.init({"request": request})
    document = await orchestrator.parse(context, source)
    errors = await orchestrator.validate(context, orchestrator.schema, document)
    await orchestrator.context_factory(context)
    result = await orchestrator.execute(orchestrator.schema, document, context_value=context)

Before-hooks of a phase always run in plugin order and are awaited one at a
time, so a hook sees every context change made by the hooks before it.
"""

import contextlib
import logging
from collections.abc import Callable, Iterable, Mapping, MutableMapping, Sequence
from functools import partial
from typing import Any

from graphql import DocumentNode, GraphQLError, GraphQLSchema, specified_rules

from envelope_core.errors import create_error
from envelope_core.hooks import HookChain, is_async_iterable, maybe_await, stream_with_hooks
from envelope_core.plugins.registry import PluginRegistry
from envelope_core.telemetry import instrument_phase, record_stream_end, record_stream_start
from envelope_core.types import (
    Context,
    ExecuteFn,
    ExecutionArgs,
    OnContextBuildingDonePayload,
    OnContextBuildingPayload,
    OnEnvelopedPayload,
    OnExecuteDonePayload,
    OnExecutePayload,
    OnNextPayload,
    OnParseDonePayload,
    OnParsePayload,
    OnSubscribeErrorPayload,
    OnSubscribePayload,
    OnSubscribeResultPayload,
    OnValidateDonePayload,
    OnValidatePayload,
    OperationArgs,
    ParseFn,
    ParseParams,
    Phase,
    ResultOrStream,
    SubscribeFn,
    SubscriptionArgs,
    ValidateFn,
    ValidateParams,
)

from .engine import default_execute, default_parse, default_subscribe, default_validate
from .resolvers import install_resolver_hooks
from .schema import SchemaManager

logger = logging.getLogger(__name__)

_PHASE_HOOKS = {
    Phase.PARSE: "on_parse",
    Phase.VALIDATE: "on_validate",
    Phase.CONTEXT: "on_context_building",
    Phase.EXECUTE: "on_execute",
    Phase.SUBSCRIBE: "on_subscribe",
}


def extend_context(context: Context, extension: Any) -> None:
    """Merge ``extension`` into ``context`` in place.

    Raises:
        EnvelopeError(INVALID_CONTEXT_EXTENSION): If extension is not a mapping
    """
    if not isinstance(extension, Mapping):
        raise create_error("INVALID_CONTEXT_EXTENSION", type_name=type(extension).__name__)
    context.update(extension)


def _outcome_hooks(outcomes: Iterable[Any], name: str) -> list[Callable[..., Any]]:
    hooks = []
    for outcome in outcomes:
        hook = getattr(outcome, name, None)
        if hook is not None:
            hooks.append(hook)
    return hooks


class Orchestrator:
    """Composed request pipelines over one plugin list.

    Construct once per application and share across requests; all
    per-request state lives in the request context and the arguments.

    Attributes:
        plugins: Frozen plugin list in effect
    """

    def __init__(
        self,
        plugins: Iterable[Any],
        parse: ParseFn | None = None,
        validate: ValidateFn | None = None,
        execute: ExecuteFn | None = None,
        subscribe: SubscribeFn | None = None,
        enable_internal_tracing: bool = False,
    ):
        self._parse_fn = parse or default_parse
        self._validate_fn = validate or default_validate
        self._execute_fn = execute or default_execute
        self._subscribe_fn = subscribe or default_subscribe
        self._tracing = enable_internal_tracing

        self._schemas = SchemaManager()
        self._registry = PluginRegistry()
        self.plugins = self._registry.initialize(plugins, self._schemas)

        self._chains = {
            phase: HookChain.from_plugins(phase, self.plugins, hook_name)
            for phase, hook_name in _PHASE_HOOKS.items()
        }
        # Positions are kept so set_schema never notifies the plugin calling it
        self._enveloped_hooks = [
            (index, plugin.on_enveloped)
            for index, plugin in enumerate(self.plugins)
            if getattr(plugin, "on_enveloped", None) is not None
        ]

    @property
    def schema(self) -> GraphQLSchema | None:
        """Current schema."""
        return self._schemas.current

    def get_current_schema(self) -> GraphQLSchema | None:
        return self._schemas.current

    def replace_schema(self, schema: GraphQLSchema) -> None:
        """Swap the schema for all subsequent requests and notify every plugin."""
        self._schemas.replace_schema(schema)

    def _trace(self, phase: Phase, **attributes: Any):
        if self._tracing:
            return instrument_phase(phase, **attributes)
        return contextlib.nullcontext()

    # Request initialization

    def init(self, context: Context | None = None) -> Context:
        """Start a request: run ``on_enveloped`` over its context.

        Args:
            context: Initial request context (a new dict when None)

        Returns:
            The same context object, possibly extended
        """
        context = {} if context is None else context
        extend = partial(extend_context, context)
        for index, hook in self._enveloped_hooks:
            hook(
                OnEnvelopedPayload(
                    context=context,
                    extend_context=extend,
                    set_schema=partial(self._schemas.replace_schema, ignore_index=index),
                )
            )
        return context

    # Parse

    async def parse(self, context: Context, source: Any, **options: Any) -> DocumentNode:
        """Parse a document through the ``on_parse`` hooks.

        Failures of the parse function are handed to the after-hooks as
        values; whatever error remains afterwards is raised.

        Args:
            context: Request context
            source: Document source (str or graphql Source)
            **options: Forwarded to the parse function

        Returns:
            Parsed document

        Raises:
            Exception: Final parse error after the after-hooks ran
            EnvelopeError(PARSE_FAILED): If no document and no error remain
        """
        async with self._trace(Phase.PARSE):
            extend = partial(extend_context, context)
            params = ParseParams(source=source, options=options)
            parse_fn = self._parse_fn
            result: DocumentNode | Exception | None = None

            def set_parse_fn(fn: ParseFn) -> None:
                nonlocal parse_fn
                parse_fn = fn

            def set_result(value: DocumentNode | Exception) -> None:
                nonlocal result
                result = value

            after_fns = await self._chains[Phase.PARSE].run_before(
                lambda: OnParsePayload(
                    context=context,
                    extend_context=extend,
                    params=params,
                    parse_fn=parse_fn,
                    set_parse_fn=set_parse_fn,
                    set_parsed_document=set_result,
                )
            )

            if result is None:
                try:
                    result = await maybe_await(parse_fn(params.source, **params.options))
                except Exception as e:
                    result = e

            await HookChain.run_after(
                after_fns,
                lambda: OnParseDonePayload(
                    context=context,
                    extend_context=extend,
                    result=result,
                    replace_parse_result=set_result,
                ),
            )

            if isinstance(result, Exception):
                raise result
            if result is None:
                raise create_error("PARSE_FAILED", phase=Phase.PARSE.value)
            return result

    # Validate

    async def validate(
        self,
        context: Context,
        schema: GraphQLSchema,
        document_ast: DocumentNode,
        rules: Sequence[Any] | None = None,
        max_errors: int | None = None,
        type_info: Any = None,
    ) -> list[GraphQLError]:
        """Validate a document through the ``on_validate`` hooks.

        Returns:
            Validation errors (empty when the document is valid)
        """
        async with self._trace(Phase.VALIDATE):
            extend = partial(extend_context, context)
            params = ValidateParams(
                schema=schema,
                document_ast=document_ast,
                rules=rules,
                max_errors=max_errors,
                type_info=type_info,
            )
            validate_fn = self._validate_fn
            extra_rules: list[Any] = []
            result: list[GraphQLError] | None = None

            def set_validation_fn(fn: ValidateFn) -> None:
                nonlocal validate_fn
                validate_fn = fn

            def set_result(errors: list[GraphQLError]) -> None:
                nonlocal result
                result = list(errors)

            after_fns = await self._chains[Phase.VALIDATE].run_before(
                lambda: OnValidatePayload(
                    context=context,
                    extend_context=extend,
                    params=params,
                    add_validation_rule=extra_rules.append,
                    validate_fn=validate_fn,
                    set_validation_fn=set_validation_fn,
                    set_result=set_result,
                )
            )

            if result is None:
                rules = params.rules
                if extra_rules:
                    rules = [*(rules if rules is not None else specified_rules), *extra_rules]
                call_args: list[Any] = [params.schema, params.document_ast]
                if rules is not None:
                    call_args.append(rules)
                call_kwargs = {}
                if params.max_errors is not None:
                    call_kwargs["max_errors"] = params.max_errors
                if params.type_info is not None:
                    call_kwargs["type_info"] = params.type_info
                result = list(await maybe_await(validate_fn(*call_args, **call_kwargs)))

            await HookChain.run_after(
                after_fns,
                lambda: OnValidateDonePayload(
                    context=context,
                    extend_context=extend,
                    valid=not result,
                    result=result,
                    set_result=set_result,
                ),
            )
            return result

    # Context building

    async def context_factory(
        self, context: Context, orchestrator_ctx: Mapping[str, Any] | None = None
    ) -> Context:
        """Build the request context through the ``on_context_building`` hooks.

        Hook errors propagate; extensions made before the error stay in place.

        Args:
            context: Request context, extended in place
            orchestrator_ctx: Extra values merged in before the hooks run

        Returns:
            The same context object
        """
        async with self._trace(Phase.CONTEXT):
            extend = partial(extend_context, context)
            if orchestrator_ctx:
                extend(orchestrator_ctx)

            stopped = False

            def break_context_building() -> None:
                nonlocal stopped
                stopped = True

            outcomes = await self._chains[Phase.CONTEXT].run_before(
                lambda: OnContextBuildingPayload(
                    context=context,
                    extend_context=extend,
                    break_context_building=break_context_building,
                ),
                until=lambda: stopped,
            )

            await HookChain.run_after(
                [fn for fn in outcomes if callable(fn)],
                lambda: OnContextBuildingDonePayload(context=context, extend_context=extend),
            )
            return context

    # Execute

    async def execute(self, *args: Any, **kwargs: Any) -> ResultOrStream:
        """Execute an operation through the ``on_execute`` hooks.

        Accepts one ``ExecutionArgs`` (or a mapping of its fields), or
        graphql-core's ``execute`` signature.

        Returns:
            A single result, or an async iterator of results
        """
        exec_args = ExecutionArgs.coerce(args, kwargs)
        context = self._request_context(exec_args)

        async with self._trace(Phase.EXECUTE, operation_name=exec_args.operation_name):
            extend = partial(extend_context, context)
            execute_fn = self._execute_fn
            result: Any = None
            stopped = False

            def set_execute_fn(fn: ExecuteFn) -> None:
                nonlocal execute_fn
                execute_fn = fn

            def set_result_and_stop_execution(value: ResultOrStream) -> None:
                nonlocal result, stopped
                result = value
                stopped = True

            outcomes = await self._chains[Phase.EXECUTE].run_before(
                lambda: OnExecutePayload(
                    execute_fn=execute_fn,
                    args=exec_args,
                    set_execute_fn=set_execute_fn,
                    set_result_and_stop_execution=set_result_and_stop_execution,
                    extend_context=extend,
                ),
                until=lambda: stopped,
            )

            if stopped:
                logger.debug("Execution stopped early by a plugin")
            else:
                resolver_hooks = _outcome_hooks(outcomes, "on_resolver_called")
                if resolver_hooks:
                    install_resolver_hooks(exec_args, resolver_hooks)
                result = await maybe_await(execute_fn(exec_args))

            return await self._finish(
                Phase.EXECUTE,
                exec_args,
                result,
                _outcome_hooks(outcomes, "on_execute_done"),
                OnExecuteDonePayload,
            )

    # Subscribe

    async def subscribe(self, *args: Any, **kwargs: Any) -> ResultOrStream:
        """Subscribe through the ``on_subscribe`` hooks.

        Accepts one ``SubscriptionArgs`` (or a mapping of its fields), or
        graphql-core's ``subscribe`` signature.

        Returns:
            An async iterator of results, or a single result carrying the
            errors that prevented the subscription
        """
        sub_args = SubscriptionArgs.coerce(args, kwargs)
        context = self._request_context(sub_args)

        async with self._trace(Phase.SUBSCRIBE, operation_name=sub_args.operation_name):
            extend = partial(extend_context, context)
            subscribe_fn = self._subscribe_fn
            result: Any = None
            stopped = False

            def set_subscribe_fn(fn: SubscribeFn) -> None:
                nonlocal subscribe_fn
                subscribe_fn = fn

            def set_result_and_stop_execution(value: ResultOrStream) -> None:
                nonlocal result, stopped
                result = value
                stopped = True

            outcomes = await self._chains[Phase.SUBSCRIBE].run_before(
                lambda: OnSubscribePayload(
                    subscribe_fn=subscribe_fn,
                    args=sub_args,
                    set_subscribe_fn=set_subscribe_fn,
                    set_result_and_stop_execution=set_result_and_stop_execution,
                    extend_context=extend,
                ),
                until=lambda: stopped,
            )

            if stopped:
                logger.debug("Subscription stopped early by a plugin")
            else:
                resolver_hooks = _outcome_hooks(outcomes, "on_resolver_called")
                if resolver_hooks:
                    install_resolver_hooks(sub_args, resolver_hooks)
                result = await maybe_await(subscribe_fn(sub_args))

            return await self._finish(
                Phase.SUBSCRIBE,
                sub_args,
                result,
                _outcome_hooks(outcomes, "on_subscribe_result"),
                OnSubscribeResultPayload,
                error_hooks=_outcome_hooks(outcomes, "on_subscribe_error"),
            )

    # Shared by execute and subscribe

    def _request_context(self, args: OperationArgs) -> MutableMapping[str, Any]:
        if args.context_value is None:
            args.context_value = {}
        if not isinstance(args.context_value, MutableMapping):
            raise create_error(
                "CONTEXT_NOT_MUTABLE", type_name=type(args.context_value).__name__
            )
        return args.context_value

    async def _finish(
        self,
        phase: Phase,
        args: OperationArgs,
        result: Any,
        done_hooks: Sequence[Callable[..., Any]],
        payload_cls: type,
        error_hooks: Sequence[Callable[..., Any]] = (),
    ) -> ResultOrStream:
        """Run the done-hooks, then wrap the result if it is a stream."""

        def set_result(value: Any) -> None:
            nonlocal result
            result = value

        stream_hooks = await HookChain(phase, done_hooks).run_before(
            lambda: payload_cls(args=args, result=result, set_result=set_result)
        )

        if not is_async_iterable(result):
            return result

        return self._wrap_stream(
            phase,
            args,
            result,
            on_next_hooks=_outcome_hooks(stream_hooks, "on_next"),
            on_end_hooks=_outcome_hooks(stream_hooks, "on_end"),
            error_hooks=error_hooks,
        )

    def _wrap_stream(
        self,
        phase: Phase,
        args: OperationArgs,
        source: Any,
        on_next_hooks: Sequence[Callable[..., Any]],
        on_end_hooks: Sequence[Callable[..., Any]],
        error_hooks: Sequence[Callable[..., Any]],
    ):
        async def transform(item: Any) -> Any:
            def set_result(value: Any) -> None:
                nonlocal item
                item = value

            await HookChain.run_after(
                on_next_hooks,
                lambda: OnNextPayload(args=args, result=item, set_result=set_result),
            )
            return item

        async def on_end() -> None:
            if self._tracing:
                record_stream_end(phase)
            for hook in on_end_hooks:
                await maybe_await(hook())

        on_error = None
        if error_hooks:

            async def on_error(error: BaseException) -> BaseException:
                if self._tracing:
                    record_stream_end(phase)

                def set_error(value: BaseException) -> None:
                    nonlocal error
                    error = value

                await HookChain.run_after(
                    error_hooks,
                    lambda: OnSubscribeErrorPayload(error=error, set_error=set_error),
                )
                return error

        if self._tracing:
            record_stream_start(phase)
        return stream_with_hooks(source, transform, on_end, on_error)


def create_orchestrator(
    plugins: Iterable[Any],
    parse: ParseFn | None = None,
    validate: ValidateFn | None = None,
    execute: ExecuteFn | None = None,
    subscribe: SubscribeFn | None = None,
    enable_internal_tracing: bool = False,
) -> Orchestrator:
    """Create an orchestrator; runs plugin initialization.

    Args:
        plugins: Plugins in invocation order
        parse: Parse function (graphql-core ``parse`` by default)
        validate: Validate function (graphql-core ``validate`` by default)
        execute: Object-form execute function (graphql-core by default)
        subscribe: Object-form subscribe function (graphql-core by default)
        enable_internal_tracing: Run each phase in a span and record metrics

    Returns:
        Orchestrator instance
    """
    return Orchestrator(
        plugins,
        parse=parse,
        validate=validate,
        execute=execute,
        subscribe=subscribe,
        enable_internal_tracing=enable_internal_tracing,
    )
