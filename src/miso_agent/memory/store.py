"""Key/value storage with TTLs and per-key locks, used by conversation memory."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Callable, Protocol


class KeyValueStore(Protocol):
    async def load(self, key: str) -> str | None:
        """Stored value, or None when missing or expired."""
        ...

    async def store(self, key: str, value: str, ttl: timedelta) -> None:
        ...

    def lock(self, name: str):
        """Async context manager serializing read-modify-write cycles on `name`."""
        ...


class InMemoryStore:
    """Process-local KeyValueStore.

    Expired entries are dropped only when read; keys never read again stay in
    memory. Locks are created per name on first use and never released. Both
    grow with the number of distinct keys, which is fine for a single process
    with a bounded set of conversations.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._values: dict[str, tuple[str, float | None]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def load(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    async def store(self, key: str, value: str, ttl: timedelta) -> None:
        seconds = ttl.total_seconds()
        expires_at = self._clock() + seconds if seconds > 0 else None
        self._values[key] = (value, expires_at)

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[None]:
        lk = self._locks.setdefault(name, asyncio.Lock())
        async with lk:
            yield
