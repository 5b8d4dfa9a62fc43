"""Long-lived background lookup workers fed through a bounded queue."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

from web3 import AsyncWeb3

from mevtrace.chain.provider import close_transport

logger = logging.getLogger(__name__)

Resolve = Callable[[str], Awaitable[None]]


class LookupWorker:
    """An asyncio task resolving addresses submitted with ``send``.

    ``send`` never blocks and gives no completion guarantee. When the queue
    is full the address is dropped and counted in ``dropped``. A failed
    resolution is logged and the worker moves on to the next address.
    ``w3`` is the RPC client the resolver owns; ``aclose`` releases it.
    """

    def __init__(self, name: str, resolve: Resolve, maxsize: int = 10_000, w3: AsyncWeb3 | None = None):
        self.name = name
        self.w3 = w3
        self._resolve = resolve
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self.dropped = 0

    def start(self) -> LookupWorker:
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"{self.name}-lookup-worker")
        return self

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def send(self, address: str) -> bool:
        """Queue ``address`` for resolution. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(address)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"{self.name} lookup queue full, dropping {address} ({self.dropped} dropped)")
            return False
        return True

    async def join(self) -> None:
        """Wait until everything submitted so far has been processed."""
        await self._queue.join()

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()

    async def aclose(self) -> None:
        """Stop the task and close the worker's RPC client."""
        self.cancel()
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        if self.w3 is not None:
            await close_transport(self.w3)

    async def _run(self) -> None:
        while True:
            address = await self._queue.get()
            try:
                await self._resolve(address)
            except Exception as e:
                logger.warning(f"{self.name} lookup failed for {address}: {e!r}")
            finally:
                self._queue.task_done()
