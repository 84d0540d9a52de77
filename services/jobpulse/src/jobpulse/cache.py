from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from jobpulse.models import NormalizedListing

LOGGER = logging.getLogger("jobpulse.cache")
DEFAULT_TTL_SECONDS = 300.0


@dataclass
class CacheEntry:
    results: list[NormalizedListing]
    stored_at: float


def build_search_key(keywords: list[str], sources: list[str], freshness: str) -> str:
    return json.dumps(
        {"k": sorted(keywords), "s": sorted(sources), "f": freshness},
        separators=(",", ":"),
    )


class SearchCache:
    """Short-lived store of raw aggregated results for ad-hoc searches.

    Entries are only dropped by ``sweep()`` or when ``get()`` finds them
    expired; there is no background timer.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, key: str) -> list[NormalizedListing] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return None
            return list(entry.results)

    def put(self, key: str, results: list[NormalizedListing]) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(results=list(results), stored_at=self._clock())

    def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            LOGGER.debug("Evicted %d expired search cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
