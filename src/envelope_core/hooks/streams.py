"""Stream wrapping with guaranteed finalization.

Execute and subscribe may return an async iterable of results instead of a
single one. The wrapper below turns per-result hooks into per-item hooks and
guarantees that exactly one terminal callback runs per stream, whether the
source ends, fails, or the consumer stops iterating early. A stream closed
before its first item is finalized too.
"""

import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


def is_async_iterable(value: Any) -> bool:
    """True if value implements the async iteration protocol."""
    return isinstance(value, AsyncIterable)


class HookedStream(AsyncIterator[Any]):
    """Async iterator yielding ``transform(item)`` for every item of a source.

    Finalization runs at most once: it closes the source and then calls
    ``on_end`` unless ``on_error`` already handled a source failure.
    """

    def __init__(
        self,
        source: AsyncIterable[Any],
        transform: Callable[[Any], Awaitable[Any]],
        on_end: Callable[[], Awaitable[None]],
        on_error: Callable[[BaseException], Awaitable[BaseException]] | None = None,
    ):
        self._iterator = aiter(source)
        self._transform = transform
        self._on_end = on_end
        self._on_error = on_error
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def __anext__(self) -> Any:
        if self._closed:
            raise StopAsyncIteration
        try:
            item = await anext(self._iterator)
        except StopAsyncIteration:
            await self._finish(failed=False)
            raise
        except Exception as error:
            if self._on_error is None:
                await self._finish(failed=False)
                raise
            logger.debug(f"Source stream raised: {error!r}")
            final = await self._on_error(error)
            await self._finish(failed=True)
            if final is error:
                raise
            raise final from error

        try:
            return await self._transform(item)
        except BaseException:
            await self._finish(failed=False)
            raise

    async def aclose(self) -> None:
        """Stop iterating: close the source and run ``on_end`` if not yet finalized."""
        await self._finish(failed=False)

    async def _finish(self, failed: bool) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            aclose = getattr(self._iterator, "aclose", None)
            if aclose is not None:
                await aclose()
        finally:
            if not failed:
                await self._on_end()


def stream_with_hooks(
    source: AsyncIterable[Any],
    transform: Callable[[Any], Awaitable[Any]],
    on_end: Callable[[], Awaitable[None]],
    on_error: Callable[[BaseException], Awaitable[BaseException]] | None = None,
) -> HookedStream:
    """Wrap ``source`` so every item passes through ``transform``.

    Args:
        source: Stream produced by the execute or subscribe function
        transform: Runs the per-item hooks and returns the item to yield
        on_end: Runs once when the stream ends normally or the consumer
            closes it, even before the first item; also after a source
            failure when ``on_error`` is None
        on_error: Runs once instead of ``on_end`` when the source raises and
            returns the error to propagate

    Returns:
        HookedStream over the transformed items, in emission order
    """
    return HookedStream(source, transform, on_end, on_error)
