"""Structured orchestrator errors.

Errors raised by the orchestrator itself (bad arguments, bad context
extensions, configuration and plugin loading failures) are ``EnvelopeError``
instances. Exceptions raised by plugins or resolvers pass through unchanged.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Where an error comes from."""

    ARGUMENTS = "ARGUMENTS"
    CONTEXT = "CONTEXT"
    PARSE = "PARSE"
    SCHEMA = "SCHEMA"
    PLUGIN = "PLUGIN"
    CONFIG = "CONFIG"
    SYSTEM = "SYSTEM"


@dataclass
class EnvelopeError(Exception):
    """An orchestrator error built from an ``ErrorTemplate``.

    Attributes:
        code: Template code, e.g. "INVALID_CONTEXT_EXTENSION"
        category: Error source
        message: One-line summary
        detail: What exactly went wrong
        suggestion: How to fix it
        phase: Request phase that raised, if any
        plugin: Plugin involved, if any
        cause: Underlying EnvelopeError
    """

    code: str
    category: ErrorCategory
    message: str
    detail: str | None = None
    suggestion: str | None = None
    phase: str | None = None
    plugin: str | None = None
    cause: "EnvelopeError | None" = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.message}: {self.detail}" if self.detail else self.message

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form for logs and GraphQL error extensions."""
        data: dict[str, Any] = {
            name: getattr(self, name)
            for name in ("code", "message", "detail", "suggestion", "phase", "plugin")
        }
        data["category"] = self.category.value
        data["timestamp"] = self.timestamp.isoformat()
        data["cause"] = None if self.cause is None else self.cause.to_dict()
        return data


@dataclass
class ErrorTemplate:
    """Message, detail and suggestion formats for one error code.

    Formats use ``str.format`` placeholders filled from the error context,
    e.g. ``"Context extension must be a mapping, got {type_name}"``.
    """

    code: str
    category: ErrorCategory
    message_template: str
    detail_template: str | None = None
    suggestion_template: str | None = None
