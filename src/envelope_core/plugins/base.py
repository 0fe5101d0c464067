"""Plugin base class.

A plugin is any object exposing some of the hook attributes below; the
orchestrator looks each one up with ``getattr`` and skips plugins where it
is missing or None. Subclassing ``Plugin`` is optional but gives a name, a
config dict and config-driven loading.
"""

from typing import Any


class Plugin:
    """Base class for orchestrator plugins.

    Subclasses define the hooks they need as methods. Hook invocation order
    within a phase is plugin list order.

    Hooks (all optional):
    1. on_plugin_init(OnPluginInitPayload) - once, during orchestrator creation
    2. on_schema_change(OnSchemaChangePayload) - whenever the schema changes
    3. on_enveloped(OnEnvelopedPayload) - once per request, at init
    4. on_parse(OnParsePayload) -> after-callback | None
    5. on_validate(OnValidatePayload) -> after-callback | None
    6. on_context_building(OnContextBuildingPayload) -> after-callback | None
    7. on_execute(OnExecutePayload) -> OnExecuteHookResult | None
    8. on_subscribe(OnSubscribePayload) -> OnSubscribeHookResult | None

    Request hooks may be coroutine functions.

    Attributes:
        name: Plugin name (set from config)
        config: Plugin-specific configuration
    """

    name: str = "base"

    on_plugin_init = None
    on_schema_change = None
    on_enveloped = None
    on_parse = None
    on_validate = None
    on_context_building = None
    on_execute = None
    on_subscribe = None

    def __init__(self, config: dict[str, Any] | None = None):
        """Initialize the plugin.

        Args:
            config: Plugin-specific configuration from envelope.yaml
        """
        self.config = config or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
