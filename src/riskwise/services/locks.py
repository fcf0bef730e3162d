"""Lazily created asyncio locks keyed by arbitrary hashables."""
import asyncio
from collections.abc import Hashable


class KeyedLocks:
    """One ``asyncio.Lock`` per key; serializes work for the same key only."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def discard(self, key: Hashable) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
