"""Before/after hook combinator shared by every request phase.

A phase collects one hook per plugin (plugins without the hook are skipped),
runs them strictly in plugin order, awaiting each before the next starts, and
keeps every non-None outcome. Once the wrapped operation is done, the
collected after-callbacks run in collection order.
"""

import inspect
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from envelope_core.types import Phase

logger = logging.getLogger(__name__)


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable, return it unchanged otherwise."""
    if inspect.isawaitable(value):
        return await value
    return value


def _hook_label(hook: Callable[..., Any]) -> str:
    return getattr(hook, "__qualname__", None) or repr(hook)


class HookChain:
    """Ordered hooks of one phase.

    Attributes:
        phase: Phase the hooks belong to (used for logging)
    """

    def __init__(self, phase: Phase, hooks: Sequence[Callable[..., Any]]):
        self.phase = phase
        self._hooks = tuple(hooks)

    @classmethod
    def from_plugins(cls, phase: Phase, plugins: Iterable[Any], hook_name: str) -> "HookChain":
        """Collect ``hook_name`` from every plugin that defines it.

        Args:
            phase: Phase the hooks belong to
            plugins: Plugins in invocation order
            hook_name: Attribute name, e.g. ``"on_parse"``

        Returns:
            HookChain over the defined hooks, in plugin order
        """
        hooks = []
        for plugin in plugins:
            hook = getattr(plugin, hook_name, None)
            if hook is not None:
                hooks.append(hook)
        return cls(phase, hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    def __iter__(self):
        return iter(self._hooks)

    async def run_before(
        self,
        build_payload: Callable[[], Any],
        until: Callable[[], bool] | None = None,
    ) -> list[Any]:
        """Run the before-hooks sequentially and collect their outcomes.

        Args:
            build_payload: Builds a fresh payload for each hook, so every hook
                sees the state left behind by the previous one
            until: Checked after each hook; the remaining hooks are skipped
                once it returns True

        Returns:
            Non-None outcomes in collection order
        """
        outcomes: list[Any] = []
        for hook in self._hooks:
            try:
                outcome = await maybe_await(hook(build_payload()))
            except Exception as e:
                logger.debug(f"{self.phase.value} hook {_hook_label(hook)} raised: {e!r}")
                raise
            if outcome is not None:
                outcomes.append(outcome)
            if until is not None and until():
                logger.debug(f"{self.phase.value} hooks stopped by {_hook_label(hook)}")
                break
        return outcomes

    @staticmethod
    async def run_after(
        after_fns: Iterable[Callable[[Any], Any]],
        build_payload: Callable[[], Any],
    ) -> None:
        """Run collected after-callbacks sequentially, in collection order.

        Args:
            after_fns: Callbacks returned by the before-hooks
            build_payload: Builds a fresh payload for each callback
        """
        for after_fn in after_fns:
            await maybe_await(after_fn(build_payload()))
