"""Producer/consumer channel for streamed answer fragments."""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Union


class _End:
    pass


class _Failure:
    def __init__(self, error: Exception) -> None:
        self.error = error


_END = _End()
_Item = Union[str, _End, _Failure]


class FragmentChannel:
    """Forward fragments from a provider stream through a bounded queue.

    A producer task drains ``source`` into the queue while the consumer
    iterates :meth:`fragments`. When the consumer stops early (client
    disconnect, cancellation) the producer task is cancelled and ``source``
    is closed, which releases the provider connection. Errors raised by the
    producer are re-raised in the consumer after already queued fragments.
    """

    def __init__(self, source: AsyncIterator[str], *, maxsize: int = 64) -> None:
        self._source = source
        self._queue: asyncio.Queue[_Item] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task[None] | None = None

    async def _pump(self) -> None:
        try:
            async for fragment in self._source:
                await self._queue.put(fragment)
        except Exception as exc:
            await self._queue.put(_Failure(exc))
            return
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()
        await self._queue.put(_END)

    async def fragments(self) -> AsyncIterator[str]:
        if self._task is not None:
            raise RuntimeError("FragmentChannel can only be consumed once")
        self._task = asyncio.create_task(self._pump())
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, _End):
                    break
                if isinstance(item, _Failure):
                    raise item.error
                yield item
        finally:
            await self.close()

    async def close(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @property
    def closed(self) -> bool:
        return self._task is not None and self._task.done()
