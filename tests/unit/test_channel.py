"""Unit tests for the single-slot handoff channel."""

from __future__ import annotations

import asyncio

import pytest

from mysql_stream.errors import ChannelClosedError, ReplicationStreamError
from mysql_stream.stream.channel import HandoffChannel


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
class TestHandoffChannel:
    async def test_put_then_get(self):
        channel: HandoffChannel[int] = HandoffChannel()
        await channel.put(1)
        assert channel.pending() == 1
        assert await channel.get() == 1
        assert channel.pending() == 0

    async def test_second_put_blocks_until_first_consumed(self):
        channel: HandoffChannel[int] = HandoffChannel()
        await channel.put(1)

        second = asyncio.create_task(channel.put(2))
        await _settle()
        assert not second.done(), "put should block while an item is unread"

        assert await channel.get() == 1
        await asyncio.wait_for(second, timeout=1.0)
        assert await channel.get() == 2

    async def test_get_blocks_until_put(self):
        channel: HandoffChannel[str] = HandoffChannel()
        getter = asyncio.create_task(channel.get())
        await _settle()
        assert not getter.done()

        await channel.put("x")
        assert await asyncio.wait_for(getter, timeout=1.0) == "x"

    async def test_fifo_order_with_concurrent_producer(self):
        channel: HandoffChannel[int] = HandoffChannel()

        async def produce() -> None:
            for i in range(10):
                await channel.put(i)

        producer = asyncio.create_task(produce())
        received = [await channel.get() for _ in range(10)]
        await producer
        assert received == list(range(10))

    async def test_close_releases_blocked_get(self):
        channel: HandoffChannel[int] = HandoffChannel()
        getter = asyncio.create_task(channel.get())
        await _settle()

        channel.close(ReplicationStreamError("lost"))
        with pytest.raises(ReplicationStreamError, match="lost"):
            await asyncio.wait_for(getter, timeout=1.0)

    async def test_close_releases_blocked_put(self):
        channel: HandoffChannel[int] = HandoffChannel()
        await channel.put(1)
        putter = asyncio.create_task(channel.put(2))
        await _settle()

        channel.close()
        with pytest.raises(ChannelClosedError):
            await asyncio.wait_for(putter, timeout=1.0)

    async def test_pending_item_delivered_before_close_error(self):
        channel: HandoffChannel[int] = HandoffChannel()
        await channel.put(7)
        channel.close(ReplicationStreamError("ended"))

        assert await channel.get() == 7
        with pytest.raises(ReplicationStreamError):
            await channel.get()

    async def test_close_error_is_sticky(self):
        channel: HandoffChannel[int] = HandoffChannel()
        first = ReplicationStreamError("first")
        channel.close(first)
        channel.close(ReplicationStreamError("second"))

        assert channel.closed
        assert channel.error is first
        for _ in range(2):
            with pytest.raises(ReplicationStreamError, match="first"):
                await channel.get()

    async def test_put_after_close_raises(self):
        channel: HandoffChannel[int] = HandoffChannel()
        channel.close()
        with pytest.raises(ChannelClosedError):
            await channel.put(1)
        assert channel.pending() == 0

    async def test_cancelled_get_loses_nothing(self):
        channel: HandoffChannel[int] = HandoffChannel()
        getter = asyncio.create_task(channel.get())
        await _settle()
        getter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await getter

        await channel.put(1)
        assert await channel.get() == 1

    async def test_cancelled_put_does_not_enqueue(self):
        channel: HandoffChannel[int] = HandoffChannel()
        await channel.put(1)
        putter = asyncio.create_task(channel.put(2))
        await _settle()
        putter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await putter

        assert await channel.get() == 1
        assert channel.pending() == 0

    async def test_get_honours_timeout(self):
        channel: HandoffChannel[int] = HandoffChannel()
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(channel.get(), timeout=0.05)

    async def test_concurrent_readers_each_get_one_item(self):
        channel: HandoffChannel[int] = HandoffChannel()
        readers = [asyncio.create_task(channel.get()) for _ in range(2)]
        await _settle()

        await channel.put(1)
        await channel.put(2)
        results = await asyncio.wait_for(asyncio.gather(*readers), timeout=1.0)
        assert sorted(results) == [1, 2]

    @pytest.mark.parametrize("spins", [0, 1, 2, 3, 4])
    async def test_reader_cancelled_after_handoff_keeps_item(self, spins):
        channel: HandoffChannel[str] = HandoffChannel()
        reader = asyncio.create_task(channel.get())
        await _settle()

        producer = asyncio.create_task(channel.put("row-1"))
        for _ in range(spins):
            await asyncio.sleep(0)
        reader.cancel()
        await asyncio.wait_for(producer, timeout=1.0)

        try:
            received = await reader
        except asyncio.CancelledError:
            received = await asyncio.wait_for(channel.get(), timeout=1.0)
        assert received == "row-1"
        assert channel.pending() == 0

    async def test_woken_reader_cancelled_passes_wakeup_on(self):
        channel: HandoffChannel[int] = HandoffChannel()
        first = asyncio.create_task(channel.get())
        second = asyncio.create_task(channel.get())
        await _settle()

        await channel.put(1)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        assert await asyncio.wait_for(second, timeout=1.0) == 1

    async def test_wait_for_timeout_after_put_loses_nothing(self):
        channel: HandoffChannel[int] = HandoffChannel()
        for value in range(20):
            with pytest.raises(TimeoutError):
                await asyncio.wait_for(channel.get(), timeout=0)
            await channel.put(value)
            assert await asyncio.wait_for(channel.get(), timeout=1.0) == value
