"""Plugin that extends the request context from a factory."""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from envelope_core.hooks import maybe_await
from envelope_core.types import Context, OnContextBuildingPayload

from ..base import Plugin

ContextFactory = Callable[[Context], Mapping[str, Any] | Awaitable[Mapping[str, Any]]]


class ExtendContextPlugin(Plugin):
    """Merges ``factory(context)`` into the context while it is built.

    The factory may be sync or async.
    """

    name = "extend_context"

    def __init__(self, factory: ContextFactory):
        super().__init__()
        self._factory = factory

    async def on_context_building(self, payload: OnContextBuildingPayload) -> None:
        payload.extend_context(await maybe_await(self._factory(payload.context)))
