"""Built-in plugins.

This module exports the built-in plugins and the BUILTIN_PLUGINS registry of
plugins that can be constructed from a config dict.
"""

from .error_handler import ErrorHandlerPlugin
from .extend_context import ExtendContextPlugin
from .immediate_introspection import ImmediateIntrospectionPlugin
from .logging import LoggingPlugin
from .masked_errors import MaskedErrorsPlugin, SafeGraphQLError, mask_error
from .metrics import MetricsPlugin
from .schema import SchemaPlugin

# Registry of builtin plugins by name
BUILTIN_PLUGINS: dict[str, type] = {
    "masked_errors": MaskedErrorsPlugin,
    "immediate_introspection": ImmediateIntrospectionPlugin,
    "logging": LoggingPlugin,
    "metrics": MetricsPlugin,
}

__all__ = [
    "SchemaPlugin",
    "ExtendContextPlugin",
    "ErrorHandlerPlugin",
    "MaskedErrorsPlugin",
    "SafeGraphQLError",
    "mask_error",
    "ImmediateIntrospectionPlugin",
    "LoggingPlugin",
    "MetricsPlugin",
    "BUILTIN_PLUGINS",
]
