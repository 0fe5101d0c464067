"""Building the plugin list.

``initialize`` walks the list handed to ``create_orchestrator`` (which plugins
may grow through ``add_plugin``); ``load_plugins`` turns ``envelope.yaml``
definitions into plugin instances.
"""

import importlib
import importlib.util
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any

from envelope_core.config.models import PluginDefinition
from envelope_core.errors import create_error
from envelope_core.types import OnPluginInitPayload, PluginSource

from .base import Plugin

if TYPE_CHECKING:
    from envelope_core.orchestrator.schema import SchemaManager

logger = logging.getLogger(__name__)


@dataclass
class PluginLoadResult:
    """Outcome of ``load_plugins``: instances in declared order, plus (name, error) pairs."""

    loaded: list[Plugin] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.loaded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


class PluginRegistry:
    """Registry for orchestrator plugins.

    Attributes:
        plugins: Plugin list in effect after ``initialize``
    """

    def __init__(self) -> None:
        self._plugins: tuple[Any, ...] = ()

    @property
    def plugins(self) -> tuple[Any, ...]:
        """Frozen plugin list (empty before ``initialize``)."""
        return self._plugins

    def initialize(self, plugins: Iterable[Any], schemas: "SchemaManager") -> tuple[Any, ...]:
        """Run ``on_plugin_init`` over a list that may grow while it is walked.

        Plugins are visited by index. ``add_plugin`` appends to the list being
        walked, so an added plugin gets its own ``on_plugin_init`` once the
        cursor reaches it. A plugin that keeps adding plugins never lets the
        walk finish.

        Args:
            plugins: Caller-declared plugins, in invocation order
            schemas: Schema manager receiving ``set_schema`` calls

        Returns:
            Frozen plugin list in effect
        """
        working = list(plugins)
        schemas.attach(working)

        index = 0
        while index < len(working):
            plugin = working[index]
            hook = getattr(plugin, "on_plugin_init", None)
            if hook is not None:
                hook(
                    OnPluginInitPayload(
                        plugins=tuple(working),
                        add_plugin=working.append,
                        set_schema=partial(schemas.set_during_init, index),
                        schema=schemas.current,
                    )
                )
            index += 1

        if len(working) > 0:
            logger.debug(f"Initialized {len(working)} plugins: {working!r}")

        self._plugins = tuple(working)
        schemas.attach(self._plugins)
        schemas.finish_init()
        return self._plugins

    def load_plugins(self, definitions: list[PluginDefinition]) -> PluginLoadResult:
        """Instantiate configured plugins in declared order.

        A definition that fails to load is recorded in ``failed`` and the rest
        still load; callers decide whether a partial list is acceptable.
        """
        result = PluginLoadResult()
        for definition in definitions:
            if not definition.enabled:
                logger.debug(f"Plugin {definition.name} is disabled")
                continue
            try:
                plugin = self._plugin_class(definition)(definition.config)
            except Exception as e:
                logger.error(f"Plugin {definition.name} ({definition.type}) not loaded: {e}")
                result.failed.append((definition.name, str(e)))
                continue
            plugin.name = definition.name
            result.loaded.append(plugin)
            logger.info(f"Plugin {definition.name} loaded from {definition.type}")
        return result

    def _plugin_class(self, definition: PluginDefinition) -> type[Plugin]:
        if definition.type == PluginSource.BUILTIN.value:
            from .builtin import BUILTIN_PLUGINS

            if definition.name not in BUILTIN_PLUGINS:
                raise create_error(
                    "UNKNOWN_BUILTIN_PLUGIN",
                    plugin=definition.name,
                    available=", ".join(sorted(BUILTIN_PLUGINS)),
                )
            return BUILTIN_PLUGINS[definition.name]

        if definition.type == PluginSource.FILE.value:
            module, origin = self._import_file(definition), definition.path
        elif definition.type == PluginSource.PACKAGE.value:
            module, origin = self._import_package(definition), definition.package
        else:
            raise _load_failure(definition, f"Unknown plugin type: {definition.type}")

        candidates = [
            value
            for value in vars(module).values()
            if isinstance(value, type) and issubclass(value, Plugin) and value is not Plugin
        ]
        # Classes defined in the module win over imported ones
        candidates.sort(key=lambda cls: cls.__module__ != module.__name__)
        if not candidates:
            raise _load_failure(definition, f"No Plugin subclass found in {origin}")
        return candidates[0]

    @staticmethod
    def _import_file(definition: PluginDefinition) -> ModuleType:
        if not definition.path:
            raise _load_failure(definition, "Plugin path is required for file plugins")
        path = Path(definition.path)
        if not path.is_file():
            raise _load_failure(definition, f"Plugin file not found: {path}")

        module_name = f"envelope_plugin_{path.stem}"
        module_spec = importlib.util.spec_from_file_location(module_name, path)
        if module_spec is None or module_spec.loader is None:
            raise _load_failure(definition, f"{path} is not an importable Python file")
        module = importlib.util.module_from_spec(module_spec)
        sys.modules[module_name] = module
        module_spec.loader.exec_module(module)
        return module

    @staticmethod
    def _import_package(definition: PluginDefinition) -> ModuleType:
        if not definition.package:
            raise _load_failure(definition, "Package name is required for package plugins")
        try:
            return importlib.import_module(definition.package)
        except ImportError as e:
            raise _load_failure(
                definition, f"Cannot import plugin package {definition.package}: {e}"
            ) from e


def _load_failure(definition: PluginDefinition, detail: str) -> Exception:
    return create_error("PLUGIN_LOAD_FAILED", plugin=definition.name, detail=detail)
