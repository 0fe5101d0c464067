"""Operation arguments shared by the execute and subscribe pipelines.

Both pipelines accept either a single arguments object or graphql-core's
positional/keyword calling convention. Everything is normalized into one of
the dataclasses below before a plugin sees it; later phases mutate the same
instance in place (e.g. the execute pipeline writes the built context into
``context_value``).
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, TypeVar

from graphql import DocumentNode, GraphQLFieldResolver, GraphQLSchema, GraphQLTypeResolver

from envelope_core.errors import create_error

ArgsT = TypeVar("ArgsT", bound="OperationArgs")


@dataclass
class OperationArgs:
    """Fields common to execution and subscription."""

    schema: GraphQLSchema
    document: DocumentNode
    root_value: Any = None
    context_value: Any = None
    variable_values: dict[str, Any] | None = None
    operation_name: str | None = None
    field_resolver: GraphQLFieldResolver | None = None

    @classmethod
    def coerce(cls: type[ArgsT], args: tuple[Any, ...], kwargs: dict[str, Any]) -> ArgsT:
        """Normalize polymorphic call arguments into the object form.

        Args:
            args: Positional arguments as received by the pipeline
            kwargs: Keyword arguments as received by the pipeline

        Returns:
            Arguments object (the same instance when one was passed)

        Raises:
            EnvelopeError(INVALID_ARGUMENTS): If the arguments don't fit
        """
        if len(args) == 1 and not kwargs:
            single = args[0]
            if isinstance(single, cls):
                return single
            if isinstance(single, Mapping):
                args, kwargs = (), dict(single)

        try:
            return cls(*args, **kwargs)
        except TypeError as e:
            raise create_error(
                "INVALID_ARGUMENTS", operation=cls.__name__, detail=str(e)
            ) from e

    def to_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the graphql-core function, unset fields omitted."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class ExecutionArgs(OperationArgs):
    """Arguments of one execution (graphql-core ``execute`` order)."""

    type_resolver: GraphQLTypeResolver | None = None


@dataclass
class SubscriptionArgs(OperationArgs):
    """Arguments of one subscription (graphql-core ``subscribe`` order)."""

    subscribe_field_resolver: GraphQLFieldResolver | None = None
