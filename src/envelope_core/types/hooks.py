"""Hook payloads and hook results.

Every phase hook receives exactly one payload dataclass. A "before" hook may
return nothing or an outcome: for parse, validate and context building the
outcome is an after-callback; for execute and subscribe it is one of the
``*HookResult`` dataclasses below. Payload callables close over the running
request, so calling them mutates that request only.
"""

from collections.abc import (
    AsyncIterable,
    Awaitable,
    Callable,
    Collection,
    Mapping,
    MutableMapping,
)
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from graphql import (
    ASTValidationRule,
    DocumentNode,
    ExecutionResult,
    GraphQLError,
    GraphQLResolveInfo,
    GraphQLSchema,
    Source,
    TypeInfo,
)

from .args import ExecutionArgs, SubscriptionArgs

Context: TypeAlias = MutableMapping[str, Any]
ExtendContext: TypeAlias = Callable[[Any], None]
MaybeAwaitable: TypeAlias = Any | Awaitable[Any]

# A single result or a stream of results. Stream items may be
# ExecutionResult instances or plain mappings with data/errors/extensions.
ResultOrStream: TypeAlias = ExecutionResult | Mapping[str, Any] | AsyncIterable[Any]

ParseFn: TypeAlias = Callable[..., DocumentNode | Awaitable[DocumentNode]]
ValidateFn: TypeAlias = Callable[..., list[GraphQLError] | Awaitable[list[GraphQLError]]]
ExecuteFn: TypeAlias = Callable[[ExecutionArgs], MaybeAwaitable]
SubscribeFn: TypeAlias = Callable[[SubscriptionArgs], MaybeAwaitable]


# =============================================================================
# Initialization and schema
# =============================================================================


@dataclass
class OnPluginInitPayload:
    """Passed to ``on_plugin_init`` once per plugin."""

    plugins: tuple[Any, ...]
    add_plugin: Callable[[Any], None]
    set_schema: Callable[[GraphQLSchema], None]
    schema: GraphQLSchema | None = None


@dataclass
class OnSchemaChangePayload:
    """Passed to ``on_schema_change`` whenever the schema reference changes."""

    schema: GraphQLSchema
    replace_schema: Callable[[GraphQLSchema], None]


@dataclass
class OnEnvelopedPayload:
    """Passed to ``on_enveloped`` when a request initializes its context."""

    context: Context
    extend_context: ExtendContext
    set_schema: Callable[[GraphQLSchema], None]


# =============================================================================
# Context building
# =============================================================================


@dataclass
class OnContextBuildingPayload:
    context: Context
    extend_context: ExtendContext
    break_context_building: Callable[[], None]


@dataclass
class OnContextBuildingDonePayload:
    context: Context
    extend_context: ExtendContext


# =============================================================================
# Parse
# =============================================================================


@dataclass
class ParseParams:
    source: str | Source
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class OnParsePayload:
    context: Context
    extend_context: ExtendContext
    params: ParseParams
    parse_fn: ParseFn
    set_parse_fn: Callable[[ParseFn], None]
    set_parsed_document: Callable[[DocumentNode], None]


@dataclass
class OnParseDonePayload:
    context: Context
    extend_context: ExtendContext
    result: DocumentNode | Exception | None
    replace_parse_result: Callable[[DocumentNode | Exception], None]


# =============================================================================
# Validate
# =============================================================================


@dataclass
class ValidateParams:
    schema: GraphQLSchema
    document_ast: DocumentNode
    rules: Collection[type[ASTValidationRule]] | None = None
    max_errors: int | None = None
    type_info: TypeInfo | None = None


@dataclass
class OnValidatePayload:
    context: Context
    extend_context: ExtendContext
    params: ValidateParams
    add_validation_rule: Callable[[type[ASTValidationRule]], None]
    validate_fn: ValidateFn
    set_validation_fn: Callable[[ValidateFn], None]
    set_result: Callable[[list[GraphQLError]], None]


@dataclass
class OnValidateDonePayload:
    context: Context
    extend_context: ExtendContext
    valid: bool
    result: list[GraphQLError]
    set_result: Callable[[list[GraphQLError]], None]


# =============================================================================
# Resolvers
# =============================================================================


@dataclass
class OnResolverCalledPayload:
    """Passed to ``on_resolver_called`` before a field resolver runs."""

    root: Any
    args: dict[str, Any]
    context: Any
    info: GraphQLResolveInfo


@dataclass
class AfterResolverPayload:
    """Passed to the after-callback of ``on_resolver_called``.

    ``result`` is the resolved value, or the exception the resolver raised.
    """

    result: Any
    set_result: Callable[[Any], None]


OnResolverCalled: TypeAlias = Callable[[OnResolverCalledPayload], MaybeAwaitable]


# =============================================================================
# Streams (shared by execute and subscribe)
# =============================================================================


@dataclass
class OnNextPayload:
    """Passed to ``on_next`` for every item of a streamed result."""

    args: ExecutionArgs | SubscriptionArgs
    result: Any
    set_result: Callable[[Any], None]


OnNext: TypeAlias = Callable[[OnNextPayload], MaybeAwaitable]
OnEnd: TypeAlias = Callable[[], MaybeAwaitable]


# =============================================================================
# Execute
# =============================================================================


@dataclass
class OnExecutePayload:
    execute_fn: ExecuteFn
    args: ExecutionArgs
    set_execute_fn: Callable[[ExecuteFn], None]
    set_result_and_stop_execution: Callable[[ResultOrStream], None]
    extend_context: ExtendContext


@dataclass
class OnExecuteDonePayload:
    args: ExecutionArgs
    result: ResultOrStream
    set_result: Callable[[ResultOrStream], None]


@dataclass
class OnExecuteDoneHookResult:
    """Returned from ``on_execute_done`` to observe a streamed result."""

    on_next: OnNext | None = None
    on_end: OnEnd | None = None


@dataclass
class OnExecuteHookResult:
    """Returned from ``on_execute``."""

    on_execute_done: Callable[[OnExecuteDonePayload], MaybeAwaitable] | None = None
    on_resolver_called: OnResolverCalled | None = None


# =============================================================================
# Subscribe
# =============================================================================


@dataclass
class OnSubscribePayload:
    subscribe_fn: SubscribeFn
    args: SubscriptionArgs
    set_subscribe_fn: Callable[[SubscribeFn], None]
    set_result_and_stop_execution: Callable[[ResultOrStream], None]
    extend_context: ExtendContext


@dataclass
class OnSubscribeResultPayload:
    args: SubscriptionArgs
    result: ResultOrStream
    set_result: Callable[[ResultOrStream], None]


@dataclass
class OnSubscribeErrorPayload:
    """Passed to ``on_subscribe_error`` when the source stream raises."""

    error: BaseException
    set_error: Callable[[BaseException], None]


@dataclass
class OnSubscribeResultHookResult:
    """Returned from ``on_subscribe_result`` to observe the stream."""

    on_next: OnNext | None = None
    on_end: OnEnd | None = None


@dataclass
class OnSubscribeHookResult:
    """Returned from ``on_subscribe``."""

    on_subscribe_result: Callable[[OnSubscribeResultPayload], MaybeAwaitable] | None = None
    on_subscribe_error: Callable[[OnSubscribeErrorPayload], MaybeAwaitable] | None = None
    on_resolver_called: OnResolverCalled | None = None
