"""
Cache service contract and an in-memory TTL implementation.

The cache is an injected collaborator: alert dedup records, persisted
detection configuration and model metadata all go through it. Production
deployments back it with a shared store; tests use InMemoryCacheService with
a controllable clock.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from bi_sentinel.anomaly.schema import utc_now

logger = logging.getLogger(__name__)


class CacheService(ABC):
    """Async key/value cache with optional per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...


@dataclass
class CacheEntry:
    """Single cache entry."""

    value: Any
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryCacheService(CacheService):
    """
    Process-local LRU cache with TTL.

    Expired entries are dropped lazily on read. When max_size is reached the
    least recently used entry is evicted.
    """

    def __init__(self, max_size: int = 10_000, clock: Callable[[], datetime] = utc_now) -> None:
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        if key in self._entries:
            del self._entries[key]
        while len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache key %s", evicted)

        expires_at = self._clock() + ttl if ttl is not None else None
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        self._entries.clear()
