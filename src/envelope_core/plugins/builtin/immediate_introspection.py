"""Plugin that skips context building for introspection-only operations.

Introspection does not need request-specific context (auth, data loaders),
so building it can be skipped when an operation selects nothing else.
"""

from collections.abc import Callable
from typing import Any

from graphql import FieldNode, ValidationRule, get_named_type, is_introspection_type

from envelope_core.types import (
    OnContextBuildingPayload,
    OnValidateDonePayload,
    OnValidatePayload,
)

from ..base import Plugin

# Context key marking a validated introspection-only operation
IS_INTROSPECTION_KEY = "__envelope_is_introspection__"

INTROSPECTION_FIELD_NAMES = frozenset({"__typename", "__schema", "__type"})


def introspection_tracking_rule(
    on_operation: Callable[[], None], on_regular_field: Callable[[], None]
) -> type[ValidationRule]:
    """Validation rule class reporting each operation and each regular field it visits."""

    class IntrospectionTrackingRule(ValidationRule):
        def enter_operation_definition(self, *_args: Any) -> None:
            on_operation()

        def enter_field(self, node: FieldNode, *_args: Any) -> None:
            parent_type = self.context.get_parent_type()
            if parent_type is None:
                return
            if (
                not is_introspection_type(get_named_type(parent_type))
                and node.name.value not in INTROSPECTION_FIELD_NAMES
            ):
                on_regular_field()

    return IntrospectionTrackingRule


class ImmediateIntrospectionPlugin(Plugin):
    """Breaks context building once validation saw only introspection fields.

    The context is marked only when the added rule actually walked the
    document. Validation answered by ``set_result`` or by a validate function
    that ignores the extra rules leaves the context unmarked.
    """

    name = "immediate_introspection"

    def on_validate(self, payload: OnValidatePayload) -> Callable[[OnValidateDonePayload], None]:
        seen = {"operation": False, "regular_field": False}

        def on_operation() -> None:
            seen["operation"] = True

        def on_regular_field() -> None:
            seen["regular_field"] = True

        payload.add_validation_rule(introspection_tracking_rule(on_operation, on_regular_field))

        def after_validate(done: OnValidateDonePayload) -> None:
            if done.valid and seen["operation"] and not seen["regular_field"]:
                done.extend_context({IS_INTROSPECTION_KEY: True})

        return after_validate

    def on_context_building(self, payload: OnContextBuildingPayload) -> None:
        if payload.context.get(IS_INTROSPECTION_KEY):
            payload.break_context_building()
