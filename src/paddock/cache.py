"""In-memory TTL response cache shared by every fetch operation."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# TTLs (seconds) per logical dataset
SCHEDULE_TTL = 3600.0
STANDINGS_TTL = 1800.0
LAST_RACE_TTL = 300.0
RESULTS_TTL = 3600.0
SESSIONS_TTL = 3600.0
LAPS_TTL = 3600.0
MISS_TTL = 300.0
BIOGRAPHY_TTL = 86400.0
DRIVERS_TTL = 86400.0


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    timestamp: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class ResponseCache:
    """Key -> value store where each entry carries its own time-to-live.

    Stale entries are never purged on read; ``get`` simply reports them as
    absent and the next ``set`` overwrites them.

    Usage:
        cache = ResponseCache()
        cache.set("schedule-2024", races, ttl=SCHEDULE_TTL)
        races = cache.get("schedule-2024")  # None once stale
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or stale."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` under ``key``; last write wins."""
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl!r}")
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock(), ttl=ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
