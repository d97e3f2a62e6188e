"""In-memory TTL cache with a soft size bound.

Entries are reusable while `now - stored_at < ttl`. When an insert pushes
the entry count past `max_entries`, the single oldest-inserted entry is
dropped (insertion order, not recency of use). Updating an existing key
keeps its original insertion slot.

Not thread-safe: one Lambda invocation runs at a time per container.
"""

import logging
import time
from typing import Any, Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)


class CacheEntry(NamedTuple):
    key: str
    payload: Any
    stored_at: float


class TTLCache:
    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 50,
        clock: Callable[[], float] = time.time,
        name: str = "cache",
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached payload, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[key]
            logger.debug(f"[Cache:{self.name}] Expired {key}")
            return None
        return entry.payload

    def set(self, key: str, payload: Any) -> None:
        self._entries[key] = CacheEntry(key, payload, self._clock())
        if len(self._entries) > self.max_entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            logger.debug(f"[Cache:{self.name}] Evicted {oldest_key}")

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
