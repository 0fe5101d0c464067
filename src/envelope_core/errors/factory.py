"""Creating errors by code.

    raise create_error("INVALID_CONTEXT_EXTENSION", type_name="list")
"""

from typing import Any

from .errors import EnvelopeError
from .registry import ErrorRegistry


class ErrorFactory:
    """Front end over an ``ErrorRegistry`` taking context as keywords."""

    def __init__(self, registry: ErrorRegistry | None = None):
        self.registry = registry if registry is not None else ErrorRegistry()

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: EnvelopeError | None = None,
        **values: Any,
    ) -> EnvelopeError:
        """Build the error for ``code``.

        Args:
            code: Registered error code
            context: Template values
            cause: Underlying error
            **values: More template values, overriding ``context``
        """
        return self.registry.create(code, {**(context or {}), **values}, cause=cause)


_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Process-wide factory used by ``create_error``."""
    global _factory
    if _factory is None:
        _factory = ErrorFactory()
    return _factory


def create_error(code: str, **context: Any) -> EnvelopeError:
    return get_error_factory().create(code, context)
