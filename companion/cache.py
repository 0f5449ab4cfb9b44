"""
Per-user result caches for the review service.

Review queues and analytics reports are cached for a short TTL and dropped
as soon as the user's data changes. A TTL of 0 disables a cache.

Each user also has a generation number that invalidate_user() bumps. A
result computed from data read before an invalidation carries the older
generation and is not stored.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any

from cachetools import TTLCache
from loguru import logger

QUEUE = "queue"
ANALYTICS = "analytics"


class ReviewCache:
    """TTL caches keyed by (user_id, *extra) for each cached view."""

    def __init__(self, queue_ttl: int = 30, analytics_ttl: int = 0, max_entries: int = 1024):
        self._caches: dict[str, TTLCache | None] = {
            QUEUE: TTLCache(maxsize=max_entries, ttl=queue_ttl) if queue_ttl > 0 else None,
            ANALYTICS: (
                TTLCache(maxsize=max_entries, ttl=analytics_ttl) if analytics_ttl > 0 else None
            ),
        }
        self._generations: dict[str, int] = {}

    @classmethod
    def from_config(cls, config: dict[str, int]) -> ReviewCache:
        return cls(
            queue_ttl=config.get("queue_ttl", 30),
            analytics_ttl=config.get("analytics_ttl", 0),
            max_entries=config.get("max_entries", 1024),
        )

    def get(self, kind: str, user_id: str, *extra: Hashable) -> Any | None:
        cache = self._caches[kind]
        if cache is None:
            return None
        return cache.get((user_id, *extra))

    def generation(self, user_id: str) -> int:
        """Current generation of a user's cached views."""
        return self._generations.get(user_id, 0)

    def set(
        self,
        kind: str,
        user_id: str,
        value: Any,
        *extra: Hashable,
        generation: int | None = None,
    ) -> bool:
        """
        Cache a value.

        Args:
            generation: Generation read before the value was computed; the
                value is dropped when the user has been invalidated since

        Returns:
            True when the value was stored
        """
        cache = self._caches[kind]
        if cache is None:
            return False
        if generation is not None and generation != self.generation(user_id):
            logger.debug(f"Dropped stale {kind} result for {user_id}")
            return False
        cache[(user_id, *extra)] = value
        return True

    def invalidate_user(self, user_id: str) -> int:
        """Drop every cached view of a user. Returns the number of entries removed."""
        self._generations[user_id] = self.generation(user_id) + 1
        removed = 0
        for cache in self._caches.values():
            if cache is None:
                continue
            for key in [key for key in list(cache.keys()) if key[0] == user_id]:
                cache.pop(key, None)
                removed += 1
        if removed:
            logger.debug(f"Invalidated {removed} cached view(s) for {user_id}")
        return removed

    def clear(self) -> None:
        for cache in self._caches.values():
            if cache is not None:
                cache.clear()
