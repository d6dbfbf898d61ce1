from __future__ import annotations

import asyncio

import pytest

from localrag.services.streaming import FragmentChannel


class _Source:
    def __init__(self, fragments, error: Exception | None = None) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.closed = False

    async def iterate(self):
        try:
            for fragment in self.fragments:
                await asyncio.sleep(0)
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


@pytest.mark.asyncio
async def test_fragments_arrive_in_order():
    source = _Source(["a", "b", "c", "d"])
    channel = FragmentChannel(source.iterate(), maxsize=2)

    received = [fragment async for fragment in channel.fragments()]

    assert received == ["a", "b", "c", "d"]
    assert source.closed
    assert channel.closed


@pytest.mark.asyncio
async def test_producer_error_follows_queued_fragments():
    source = _Source(["a", "b"], error=RuntimeError("provider dropped"))
    channel = FragmentChannel(source.iterate())
    received = []

    with pytest.raises(RuntimeError, match="provider dropped"):
        async for fragment in channel.fragments():
            received.append(fragment)

    assert received == ["a", "b"]


@pytest.mark.asyncio
async def test_early_stop_cancels_producer_and_closes_source():
    source = _Source([str(index) for index in range(100)])
    channel = FragmentChannel(source.iterate(), maxsize=1)
    iterator = channel.fragments()

    assert await iterator.__anext__() == "0"
    await iterator.aclose()

    assert channel.closed
    assert source.closed


@pytest.mark.asyncio
async def test_channel_is_single_use():
    channel = FragmentChannel(_Source(["a"]).iterate())
    assert [f async for f in channel.fragments()] == ["a"]

    with pytest.raises(RuntimeError):
        async for _ in channel.fragments():
            pass
