"""
Per-resource async locks.

Operations on the same resource id run one at a time; operations on
different ids run in parallel. Multi-resource operations acquire their
locks in sorted key order so two of them can never deadlock.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..models import ResourceKind

LockKey = tuple[str, str]


def lock_key(kind: ResourceKind, resource_id: str) -> LockKey:
    return (kind.value, resource_id)


class ResourceLocks:
    """Reference-counted asyncio locks keyed by (kind, resource_id).

    Locks are created on first use and dropped once nobody holds or
    waits for them, so memory stays proportional to in-flight work.

    Thread safety:
        Must be used from a single event loop.
    """

    def __init__(self) -> None:
        self._locks: dict[LockKey, asyncio.Lock] = {}
        self._users: dict[LockKey, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, *keys: LockKey) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        for key in ordered:
            self._users[key] = self._users.get(key, 0) + 1
            self._locks.setdefault(key, asyncio.Lock())

        acquired: list[LockKey] = []
        try:
            for key in ordered:
                await self._locks[key].acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in ordered:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]
