"Crawl frontier and visited ledger"

import asyncio

from typing import Set

from .common import normalize_instance


class Frontier:
    """Queue of the instances to inspect.

    Every address ever queued is remembered in the ledger, so an instance is
    inspected at most once even when several peer lists mention it at the
    same time.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._ledger: Set[str] = set()
        self._lock = asyncio.Lock()

    async def try_enqueue(self, address: str) -> bool:
        address = normalize_instance(address)
        async with self._lock:
            if address in self._ledger:
                return False
            self._ledger.add(address)
            self._queue.put_nowait(address)
        return True

    async def dequeue(self) -> str:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        """Waits until every queued address has been inspected."""
        await self._queue.join()

    def is_empty(self) -> bool:
        return self._queue.empty()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def known(self) -> int:
        return len(self._ledger)

    def __contains__(self, address: str) -> bool:
        return normalize_instance(address) in self._ledger
