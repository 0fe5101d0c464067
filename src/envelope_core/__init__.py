"""Envelope Core - Plugin hook orchestration for GraphQL.

Wraps the parse, validate, context building, execute and subscribe phases of
a GraphQL request in an ordered chain of plugins that can observe and rewrite
each phase.
"""

from envelope_core.errors import EnvelopeError
from envelope_core.orchestrator import (
    Enveloped,
    Orchestrator,
    create_orchestrator,
    envelop,
    envelop_from_config,
)
from envelope_core.plugins import Plugin

# Built-in plugins are available as a submodule
# Usage: from envelope_core.plugins.builtin import MaskedErrorsPlugin

__version__ = "0.1.0"
__all__ = [
    "__version__",
    "envelop",
    "envelop_from_config",
    "Enveloped",
    "Orchestrator",
    "create_orchestrator",
    "Plugin",
    "EnvelopeError",
]
