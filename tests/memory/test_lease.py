"""Tests for the memory access lease."""

import asyncio

import pytest

from koro.errors import Busy
from koro.memory.lease import MemoryLease


class TestMemoryLease:
    async def test_shared_holders_coexist(self):
        lease = MemoryLease(timeout=1.0)
        async with lease.shared():
            async with lease.shared(timeout=0.1):
                assert lease.readers == 2
        assert lease.readers == 0

    async def test_exclusive_blocks_shared(self):
        lease = MemoryLease()
        await lease.acquire(True)
        with pytest.raises(Busy):
            await lease.acquire(False, timeout=0.05)
        lease.release(True)
        async with lease.shared(timeout=0.05):
            assert lease.readers == 1

    async def test_shared_blocks_exclusive(self):
        lease = MemoryLease()
        async with lease.shared():
            with pytest.raises(Busy):
                await lease.acquire(True, timeout=0.05)
        assert not lease.exclusive_held

    async def test_exclusive_serializes(self):
        lease = MemoryLease(timeout=2.0)
        active = 0
        peak = 0

        async def writer():
            nonlocal active, peak
            async with lease.exclusive():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(writer() for _ in range(5)))
        assert peak == 1

    async def test_fifo_writer_not_starved(self):
        lease = MemoryLease(timeout=2.0)
        order: list[str] = []

        await lease.acquire(False)

        async def writer():
            async with lease.exclusive():
                order.append("writer")

        async def late_reader():
            async with lease.shared():
                order.append("reader")

        w = asyncio.create_task(writer())
        await asyncio.sleep(0)
        r = asyncio.create_task(late_reader())
        await asyncio.sleep(0)

        # The reader queued behind the writer, even though only readers hold.
        assert order == []
        lease.release(False)
        await asyncio.gather(w, r)
        assert order == ["writer", "reader"]

    async def test_timed_out_waiter_leaves_queue(self):
        lease = MemoryLease()
        await lease.acquire(True)
        with pytest.raises(Busy):
            await lease.acquire(True, timeout=0.01)
        lease.release(True)
        # Nothing stale left behind.
        await lease.acquire(True, timeout=0.01)
        assert lease.exclusive_held

    async def test_cancelled_waiter_does_not_hold(self):
        lease = MemoryLease()
        await lease.acquire(True)
        task = asyncio.create_task(lease.acquire(False, timeout=5.0))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        lease.release(True)
        assert lease.readers == 0
        assert not lease.exclusive_held

    async def test_released_on_exception(self):
        lease = MemoryLease()
        with pytest.raises(RuntimeError):
            async with lease.exclusive():
                raise RuntimeError("boom")
        assert not lease.exclusive_held
