"""Hook composition primitives used by the orchestrator."""

from .chain import HookChain, maybe_await
from .streams import HookedStream, is_async_iterable, stream_with_hooks

__all__ = [
    "HookChain",
    "HookedStream",
    "maybe_await",
    "is_async_iterable",
    "stream_with_hooks",
]
