"""Plugin framework.

Usage:
    from envelope_core.plugins import Plugin
    from envelope_core.types import OnContextBuildingPayload

    class CurrentUserPlugin(Plugin):
        name = "current-user"

        async def on_context_building(self, payload: OnContextBuildingPayload) -> None:
            payload.extend_context({"user": await load_user(payload.context["request"])})

    # Load plugins from config
    registry = PluginRegistry()
    result = registry.load_plugins(config.plugins)
"""

from .base import Plugin
from .registry import PluginLoadResult, PluginRegistry

__all__ = [
    # Base class
    "Plugin",
    # Registry
    "PluginRegistry",
    "PluginLoadResult",
]
