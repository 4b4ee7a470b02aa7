"""
Per-user turn serialization.

Two turns for the same user must never interleave: the second would decode
state the first is about to replace. Different users never block each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class SessionLocks:
    """Registry of one ``asyncio.Lock`` per user id."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def is_held(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        async with self._get_lock(user_id):
            yield

    def __len__(self) -> int:
        return len(self._locks)
