import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable, Optional

from cachetools import TTLCache

CACHE_MAX_ENTRIES = 1024


@dataclass
class CacheEntry:
    data: Any
    timestamp: float


class ResourceCache:
    """
    TTL cache for one upstream resource type, backed by cachetools.

    Empty loads (None, [], {}) are never stored so a transient upstream
    failure is not pinned for a whole TTL window.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int = CACHE_MAX_ENTRIES,
    ):
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._entries = TTLCache(maxsize=maxsize, ttl=ttl, timer=clock)
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def set(self, key: Hashable, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock())

    async def get_or_compute(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        cached = self.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        data = await loader()
        if data:
            self.set(key, data)
        return data

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
