from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple

from .base import AsyncCacheBackend


class InMemoryAsyncCache(AsyncCacheBackend):
    """
    Process-local cache with optional TTL, used for plan lookups.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and deadline <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        deadline = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._entries[key] = (value, deadline)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]
