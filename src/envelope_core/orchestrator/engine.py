"""Default phase functions backed by graphql-core."""

from typing import Any

from graphql import execute, parse, subscribe, validate

from envelope_core.hooks import maybe_await
from envelope_core.types import ExecutionArgs, SubscriptionArgs

default_parse = parse
default_validate = validate


async def default_execute(args: ExecutionArgs) -> Any:
    """Run graphql-core ``execute`` with the object-form arguments."""
    return await maybe_await(execute(**args.to_kwargs()))


async def default_subscribe(args: SubscriptionArgs) -> Any:
    """Run graphql-core ``subscribe`` with the object-form arguments.

    Returns either a source stream of results or an ``ExecutionResult``
    carrying the errors that prevented the subscription.
    """
    return await maybe_await(subscribe(**args.to_kwargs()))
