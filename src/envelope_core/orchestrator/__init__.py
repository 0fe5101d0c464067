"""Plugin orchestrator and request entry point."""

from .engine import default_execute, default_parse, default_subscribe, default_validate
from .envelop import Enveloped, GetEnveloped, envelop, envelop_from_config
from .orchestrator import Orchestrator, create_orchestrator, extend_context
from .resolvers import RESOLVER_HOOKS_KEY, install_resolver_hooks, wrap_resolver
from .schema import SchemaManager

__all__ = [
    # Orchestrator
    "Orchestrator",
    "create_orchestrator",
    "extend_context",
    "SchemaManager",
    # Entry point
    "envelop",
    "envelop_from_config",
    "Enveloped",
    "GetEnveloped",
    # Resolvers
    "RESOLVER_HOOKS_KEY",
    "install_resolver_hooks",
    "wrap_resolver",
    # Engine defaults
    "default_parse",
    "default_validate",
    "default_execute",
    "default_subscribe",
]
