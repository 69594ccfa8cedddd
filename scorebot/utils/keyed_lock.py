"""
Per-key asyncio locks.

Used by the stores to serialise read-modify-write sequences on the same
message id while leaving different ids fully concurrent.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Hashable, List


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        # key -> [lock, number of holders + waiters]
        self._locks: Dict[Hashable, List] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        entry = self._locks.get(key)
        if entry is None:
            entry = [asyncio.Lock(), 0]
            self._locks[key] = entry
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
