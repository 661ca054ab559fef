"""Bounded TTL cache for expanded windows."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from cachetools import TTLCache

from .models import Occurrence

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Expansion cache counters."""

    hits: int = 0
    misses: int = 0
    stores: int = 0

    @property
    def hit_rate_percent(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total * 100) if total else 0.0


class ExpansionCache:
    """LRU cache with per-entry expiry for expansion results.

    Entries expire ``ttl`` seconds after they are stored. Once ``maxsize``
    entries are held, the least recently used one is evicted. Sync runs do
    not invalidate entries, so results can be up to ``ttl`` seconds stale.
    """

    def __init__(
        self,
        maxsize: int = 200,
        ttl: float = 30.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        self.maxsize = maxsize
        self.ttl = ttl
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self.stats = CacheStats()

        logger.debug(f"Expansion cache created (maxsize={maxsize}, ttl={ttl}s)")

    @staticmethod
    def make_key(
        window_start: str, window_end: str, include_cancelled: bool, calendar_ids: list[str]
    ) -> str:
        """Canonical key for a window, flag and calendar set."""
        return json.dumps(
            {
                "s": window_start,
                "e": window_end,
                "c": bool(include_cancelled),
                "ids": sorted(calendar_ids),
            },
            separators=(",", ":"),
            sort_keys=True,
        )

    def get(self, key: str) -> Optional[list[Occurrence]]:
        value = self._cache.get(key)
        if value is None:
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return list(value)

    def set(self, key: str, occurrences: list[Occurrence]) -> None:
        self._cache[key] = tuple(occurrences)
        self.stats.stores += 1

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache
