import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class ItemLockRegistry:
    """
    One asyncio.Lock per item, created on first use.

    A lock is dropped once no task holds or waits on it, so the registry only
    grows with the number of items being bid on right now.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, item_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(item_id, asyncio.Lock())
        self._users[item_id] = self._users.get(item_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[item_id] -= 1
            if not self._users[item_id]:
                del self._users[item_id]
                del self._locks[item_id]
