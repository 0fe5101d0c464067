"""Resolver instrumentation.

Installed only for requests where some ``on_execute`` / ``on_subscribe`` hook
returned an ``on_resolver_called`` handler. Schema field resolvers are wrapped
in place once; the request's ``field_resolver`` covers fields without one.
The handlers themselves live in the request context, so a wrapped resolver
running for a request without handlers just calls through.
"""

import functools
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from graphql import (
    GraphQLFieldResolver,
    GraphQLObjectType,
    GraphQLResolveInfo,
    GraphQLSchema,
    default_field_resolver,
    is_introspection_type,
)

from envelope_core.hooks import HookChain, maybe_await
from envelope_core.types import (
    AfterResolverPayload,
    OnResolverCalledPayload,
    OperationArgs,
    Phase,
)

logger = logging.getLogger(__name__)

# Context key holding the request's on_resolver_called handlers
RESOLVER_HOOKS_KEY = "__envelope_resolver_hooks__"

_WRAPPED_MARK = "__envelope_wrapped__"


def is_wrapped(resolve: Any) -> bool:
    return getattr(resolve, _WRAPPED_MARK, False)


def wrap_resolver(resolve: GraphQLFieldResolver) -> GraphQLFieldResolver:
    """Wrap a field resolver with the request's resolver hooks.

    Wrapping an already wrapped resolver returns it unchanged.
    """
    if is_wrapped(resolve):
        return resolve

    @functools.wraps(resolve)
    def resolver_with_hooks(root: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        context = info.context
        handlers = context.get(RESOLVER_HOOKS_KEY) if isinstance(context, Mapping) else None
        if not handlers:
            return resolve(root, info, **args)
        return _resolve_with_hooks(handlers, resolve, root, info, args)

    setattr(resolver_with_hooks, _WRAPPED_MARK, True)
    return resolver_with_hooks


async def _resolve_with_hooks(
    handlers: HookChain,
    resolve: GraphQLFieldResolver,
    root: Any,
    info: GraphQLResolveInfo,
    args: dict[str, Any],
) -> Any:
    payload = OnResolverCalledPayload(root=root, args=args, context=info.context, info=info)
    after_fns = await handlers.run_before(lambda: payload)

    try:
        result = await maybe_await(resolve(root, info, **args))
    except Exception as e:
        logger.debug(f"Resolver {info.parent_type.name}.{info.field_name} raised: {e!r}")
        result = e

    def set_result(value: Any) -> None:
        nonlocal result
        result = value

    await HookChain.run_after(
        after_fns, lambda: AfterResolverPayload(result=result, set_result=set_result)
    )

    if isinstance(result, Exception):
        raise result
    return result


def instrument_schema(schema: GraphQLSchema) -> None:
    """Wrap every explicit field resolver of the schema's object types."""
    for named_type in schema.type_map.values():
        if not isinstance(named_type, GraphQLObjectType) or is_introspection_type(named_type):
            continue
        for field in named_type.fields.values():
            if field.resolve is not None and not is_wrapped(field.resolve):
                field.resolve = wrap_resolver(field.resolve)


def install_resolver_hooks(args: OperationArgs, handlers: Sequence[Any]) -> None:
    """Activate resolver hooks for one request.

    Args:
        args: Request arguments; ``context_value`` must be a mutable mapping
        handlers: ``on_resolver_called`` handlers, in plugin order
    """
    instrument_schema(args.schema)
    args.field_resolver = wrap_resolver(args.field_resolver or default_field_resolver)
    args.context_value[RESOLVER_HOOKS_KEY] = HookChain(Phase.RESOLVE, handlers)
