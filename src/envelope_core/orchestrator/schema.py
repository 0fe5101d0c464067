"""Schema state shared by all requests of one orchestrator."""

import logging
from collections.abc import Sequence
from functools import partial
from typing import Any

from graphql import GraphQLSchema

from envelope_core.types import OnSchemaChangePayload

logger = logging.getLogger(__name__)


class SchemaManager:
    """Holds the current schema and tells plugins when it changes.

    Replacement takes no lock: with concurrent replacements the last write
    wins. A plugin that replaces the schema on every notification loops
    forever.
    """

    def __init__(self) -> None:
        self._schema: GraphQLSchema | None = None
        self._plugins: Sequence[Any] = ()
        self._ready = False
        # Plugin index -> schema it was last notified of during init
        self._seen_during_init: dict[int, GraphQLSchema | None] = {}

    @property
    def current(self) -> GraphQLSchema | None:
        """Current schema, or None if no plugin has set one."""
        return self._schema

    @property
    def ready(self) -> bool:
        """True once plugin initialization has finished."""
        return self._ready

    def attach(self, plugins: Sequence[Any]) -> None:
        """Set the plugin list that receives change notifications."""
        self._plugins = plugins

    def set_during_init(self, index: int, schema: GraphQLSchema) -> None:
        """``set_schema`` for the plugin at ``index`` during initialization.

        Only plugins before ``index`` are notified. Plugins that have not
        been initialized yet see the schema through their own init payload
        and through the notification sent by ``finish_init``.
        """
        self._schema = schema
        logger.debug(f"Schema set during init by plugin #{index}")
        for i, plugin in enumerate(self._plugins[:index]):
            self._seen_during_init[i] = self._schema
            self._notify(i, plugin)

    def replace_schema(self, schema: GraphQLSchema, ignore_index: int = -1) -> None:
        """Replace the schema and notify every plugin but ``ignore_index``.

        Args:
            schema: New schema
            ignore_index: Position of the plugin that made the change
        """
        self._schema = schema
        if not self._ready:
            return
        logger.debug("Schema replaced")
        for i, plugin in enumerate(self._plugins):
            if i != ignore_index:
                self._notify(i, plugin)

    def finish_init(self) -> None:
        """Mark initialization done and notify plugins of the schema.

        A plugin already notified of the current schema during init is
        skipped, so every plugin hears about a given schema once.
        """
        self._ready = True
        seen, self._seen_during_init = self._seen_during_init, {}
        if self._schema is None:
            return
        for i, plugin in enumerate(self._plugins):
            if i in seen and seen[i] is self._schema:
                continue
            self._notify(i, plugin)

    def _notify(self, index: int, plugin: Any) -> None:
        hook = getattr(plugin, "on_schema_change", None)
        if hook is None:
            return
        hook(
            OnSchemaChangePayload(
                schema=self._schema,
                replace_schema=partial(self.replace_schema, ignore_index=index),
            )
        )
