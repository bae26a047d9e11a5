"""
Per-key mutual exclusion for record tables and relationship indexes.

Invariants:
    - Two holders of the same key never run concurrently
    - Holders of different keys never wait for each other
    - A key's lock is discarded once nobody holds or waits for it, so the
      lock table does not grow with the number of keys ever touched
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
    """A lazily created asyncio.Lock per key.

    Example:
        >>> locks = KeyedLock()
        >>> async with locks.hold(("org-1", "cluster-1")):
        ...     ...
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        return len(self._locks)
