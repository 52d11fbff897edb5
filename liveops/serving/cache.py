"""
Config Cache

In-process, TTL-bounded cache of resolved remote config responses keyed by
caller identity. Entries are served verbatim until they are ``ttl_seconds``
old; an administrative config update drops every entry. Each ``set`` also
sweeps expired entries, so the map holds at most one TTL window of callers.

Single event loop, no locking: two concurrent misses for the same caller
both resolve and the last ``set`` wins, which is harmless.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    value: Any
    captured_at: float


class ConfigCache:
    """
    Per-caller cache with a fixed time-to-live.

    Example:
        cache = ConfigCache(ttl_seconds=60)
        cache.set("player-1", response)
        response = cache.get("player-1")
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired"""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.captured_at >= self.ttl_seconds:
            self._entries.pop(key, None)
            return None

        return entry.value

    def set(self, key: str, value: Any) -> None:
        """Cache ``value`` for ``key``, stamped with the current time"""
        now = self._clock()
        self._purge_expired(now)
        # re-insert so the dict stays ordered by capture time
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, captured_at=now)

    def _purge_expired(self, now: float) -> int:
        """Drop expired entries from the oldest end; returns how many were dropped"""
        expired = []
        for key, entry in self._entries.items():
            if now - entry.captured_at < self.ttl_seconds:
                break
            expired.append(key)
        for key in expired:
            del self._entries[key]
        return len(expired)

    def delete(self, key: str) -> bool:
        """Drop one entry"""
        return self._entries.pop(key, None) is not None

    def invalidate_all(self) -> int:
        """Drop every entry; returns how many were dropped"""
        count = len(self._entries)
        self._entries.clear()
        logger.info("Config cache invalidated", entries=count)
        return count

    def __len__(self) -> int:
        return len(self._entries)
