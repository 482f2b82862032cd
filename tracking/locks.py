"""Per-session asyncio locks.

Every mutation of a session's state runs under that session's lock, so
concurrent position updates and completions for one session are applied one
after the other while different sessions never wait on each other. Locks are
process-local.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SessionLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, session_id: object) -> asyncio.Lock:
        key = str(session_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, session_id: object) -> AsyncIterator[None]:
        async with self.lock_for(session_id):
            yield

    def discard(self, session_id: object) -> None:
        """Forget the lock of an ended session."""
        lock = self._locks.get(str(session_id))
        if lock is not None and not lock.locked():
            del self._locks[str(session_id)]

    def __len__(self) -> int:
        return len(self._locks)
