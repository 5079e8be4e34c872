"""Per-store serialization of mutating requests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class StoreLockRegistry:
    """Hands out one ``asyncio.Lock`` per store id.

    Upload, delete and chunking read-modify-write the same store row, so two
    of them running against one store would lose updates. A store's entry
    lives only while some request holds or waits for its lock.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, store_id: object) -> bool:
        return store_id in self._locks

    @asynccontextmanager
    async def lock(self, store_id: str) -> AsyncIterator[None]:
        store_lock = self._locks.setdefault(store_id, asyncio.Lock())
        self._users[store_id] = self._users.get(store_id, 0) + 1
        try:
            async with store_lock:
                yield
        finally:
            self._users[store_id] -= 1
            if not self._users[store_id]:
                del self._users[store_id]
                del self._locks[store_id]
