"""Request entry point.

    get_enveloped = envelop([SchemaPlugin(schema), MaskedErrorsPlugin()])

    enveloped = get_enveloped({"request": request})
    document = await enveloped.parse(query)
    errors = await enveloped.validate(enveloped.schema, document)
    context = await enveloped.context_factory()
    result = await enveloped.execute(enveloped.schema, document, context_value=context)
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any

from graphql import GraphQLSchema

from envelope_core.config.loader import load_config
from envelope_core.config.models import EnvelopeConfig
from envelope_core.errors import create_error
from envelope_core.plugins.registry import PluginRegistry
from envelope_core.types import Context, ExecuteFn, ParseFn, SubscribeFn, ValidateFn

from .orchestrator import Orchestrator, create_orchestrator

logger = logging.getLogger(__name__)


@dataclass
class Enveloped:
    """Per-request bundle of phase functions.

    ``parse``, ``validate`` and ``context_factory`` are bound to the request
    context; ``execute`` and ``subscribe`` take the context in their
    arguments (``context_value``).
    """

    parse: Callable[..., Any]
    validate: Callable[..., Any]
    context_factory: Callable[..., Any]
    execute: Callable[..., Any]
    subscribe: Callable[..., Any]
    schema: GraphQLSchema | None
    context: Context


class GetEnveloped:
    """Callable returned by ``envelop``; one call per request."""

    def __init__(self, orchestrator: Orchestrator):
        self.orchestrator = orchestrator

    @property
    def plugins(self) -> tuple[Any, ...]:
        return self.orchestrator.plugins

    def __call__(self, initial_context: Context | None = None) -> Enveloped:
        context = self.orchestrator.init({} if initial_context is None else initial_context)
        return Enveloped(
            parse=partial(self.orchestrator.parse, context),
            validate=partial(self.orchestrator.validate, context),
            context_factory=partial(self.orchestrator.context_factory, context),
            execute=self.orchestrator.execute,
            subscribe=self.orchestrator.subscribe,
            schema=self.orchestrator.schema,
            context=context,
        )


def envelop(
    plugins: Iterable[Any],
    *,
    parse: ParseFn | None = None,
    validate: ValidateFn | None = None,
    execute: ExecuteFn | None = None,
    subscribe: SubscribeFn | None = None,
    enable_internal_tracing: bool = False,
) -> GetEnveloped:
    """Create an orchestrator and return its per-request entry point.

    Args:
        plugins: Plugins in invocation order
        parse: Parse function (graphql-core by default)
        validate: Validate function (graphql-core by default)
        execute: Object-form execute function (graphql-core by default)
        subscribe: Object-form subscribe function (graphql-core by default)
        enable_internal_tracing: Run each phase in a span and record metrics

    Returns:
        GetEnveloped callable
    """
    orchestrator = create_orchestrator(
        plugins,
        parse=parse,
        validate=validate,
        execute=execute,
        subscribe=subscribe,
        enable_internal_tracing=enable_internal_tracing,
    )
    return GetEnveloped(orchestrator)


def envelop_from_config(
    config: EnvelopeConfig | str | Path,
    plugins: Iterable[Any] = (),
    strict: bool = True,
) -> GetEnveloped:
    """Build the entry point from configuration.

    Code-supplied plugins come first, followed by configured plugins in
    declared order.

    Args:
        config: Loaded configuration, or the path of a YAML file to load
        plugins: Plugins constructed in code (e.g. SchemaPlugin)
        strict: Raise on the first plugin that failed to load

    Returns:
        GetEnveloped callable

    Raises:
        EnvelopeError(PLUGIN_LOAD_FAILED): If strict and a plugin failed
    """
    if not isinstance(config, EnvelopeConfig):
        config = load_config(config)

    load_result = PluginRegistry().load_plugins(config.plugins)
    if strict and load_result.failed:
        name, error = load_result.failed[0]
        raise create_error("PLUGIN_LOAD_FAILED", plugin=name, detail=error)
    if load_result.failed:
        logger.warning(f"Continuing without {load_result.failure_count} failed plugins")

    return envelop(
        [*plugins, *load_result.loaded],
        enable_internal_tracing=config.enable_internal_tracing,
    )
