"""Memory access lease: a FIFO async readers-writer lock with timeouts."""

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from koro.errors import Busy

logger = structlog.get_logger(__name__)


class MemoryLease:
    """Gates access to the memory store.

    Any number of shared holders, or exactly one exclusive holder. Waiters are
    granted in arrival order so a queued writer is never starved by a stream
    of readers. Release is synchronous and cannot be interrupted by
    cancellation.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._readers = 0
        self._writer = False
        self._waiters: deque[tuple[bool, asyncio.Future]] = deque()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def exclusive_held(self) -> bool:
        return self._writer

    def _can_grant(self, exclusive: bool) -> bool:
        if exclusive:
            return not self._writer and self._readers == 0
        return not self._writer

    def _grant(self, exclusive: bool) -> None:
        if exclusive:
            self._writer = True
        else:
            self._readers += 1

    def _wake(self) -> None:
        while self._waiters:
            exclusive, fut = self._waiters[0]
            if fut.done():
                self._waiters.popleft()
                continue
            if not self._can_grant(exclusive):
                break
            self._waiters.popleft()
            self._grant(exclusive)
            fut.set_result(True)
            if exclusive:
                break

    async def acquire(self, exclusive: bool, timeout: float | None = None) -> None:
        """Acquire the lease, raising ``Busy`` if it is not granted in time."""
        timeout = self.timeout if timeout is None else timeout

        if not self._waiters and self._can_grant(exclusive):
            self._grant(exclusive)
            return

        fut = asyncio.get_running_loop().create_future()
        entry = (exclusive, fut)
        self._waiters.append(entry)
        try:
            await asyncio.wait_for(fut, timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError) as e:
            if fut.done() and not fut.cancelled():
                # Granted in the same tick the wait gave up.
                self.release(exclusive)
            elif entry in self._waiters:
                self._waiters.remove(entry)
                self._wake()
            if isinstance(e, asyncio.CancelledError):
                raise
            kind = "exclusive" if exclusive else "shared"
            logger.warning("lease.timeout", kind=kind, timeout=timeout)
            raise Busy(f"Memory is busy; {kind} lease not granted within {timeout}s") from None

    def release(self, exclusive: bool) -> None:
        if exclusive:
            self._writer = False
        else:
            self._readers -= 1
        self._wake()

    @asynccontextmanager
    async def exclusive(self, timeout: float | None = None) -> AsyncIterator[None]:
        await self.acquire(True, timeout)
        try:
            yield
        finally:
            self.release(True)

    @asynccontextmanager
    async def shared(self, timeout: float | None = None) -> AsyncIterator[None]:
        await self.acquire(False, timeout)
        try:
            yield
        finally:
            self.release(False)
