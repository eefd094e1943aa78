from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

""" Response cache where each entry carries its own TTL. """

CacheKey = Tuple[str, str]


@dataclass(frozen=True)
class CacheEntry:
    response: Any
    inserted_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl


class ResponseCache:
    """
    Thread-safe in-memory DNS response cache keyed by (name, record type).

    Inputs:
        None (constructor)
    Outputs:
        ResponseCache instance

    Notes:
        All dictionary operations and the hit/miss counters are synchronized
        with an RLock. Expired entries are evicted lazily by get(); cleanup()
        sweeps the whole store. There is no size bound: the store grows with
        the number of distinct names seen within their TTLs.

    Example use:
        >>> cache = ResponseCache()
        >>> cache.set("api.test.", "A", b"wire", 60)
        >>> cache.get("api.test.", "A")
        b'wire'
        >>> cache.stats()["hits"]
        1
    """

    def __init__(self) -> None:
        self._store: Dict[CacheKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, name: str, rtype: str) -> Any | None:
        """
        Retrieves a response from the cache.

        Inputs:
            name: Query name exactly as used on set().
            rtype: Record type string (e.g. 'A').

        Outputs:
            The stored response unchanged, or None if absent or expired.
            Every call counts as exactly one hit or one miss.
        """
        key = (name, rtype)
        now = time.time()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expired(now):
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.response

    def set(self, name: str, rtype: str, response: Any, ttl: float) -> None:
        """
        Inserts or overwrites an entry, stamping it with the current time.

        Inputs:
            name: Query name.
            rtype: Record type string.
            response: Value to store (wire bytes for the server).
            ttl: Lifetime in seconds.
        Outputs:
            None
        """
        entry = CacheEntry(response=response, inserted_at=time.time(), ttl=ttl)
        with self._lock:
            self._store[(name, rtype)] = entry

    def cleanup(self) -> int:
        """Remove all expired entries.

        Inputs:
            None
        Outputs:
            Number of entries removed.
        """
        now = time.time()
        removed = 0
        with self._lock:
            # Iterate on a list of items to avoid runtime dict size change issues
            for key, entry in list(self._store.items()):
                if entry.expired(now):
                    del self._store[key]
                    removed += 1
        return removed

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, float]:
        """Brief: Return counters for reporting.

        Inputs:
          - None

        Outputs:
          - dict with hits, misses, size and hit_rate (0 before any lookup).
        """
        with self._lock:
            hits, misses, size = self._hits, self._misses, len(self._store)
        lookups = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "size": size,
            "hit_rate": hits / lookups if lookups else 0,
        }

    def peek(self, name: str, rtype: str) -> Optional[CacheEntry]:
        """Return the raw entry without touching counters or evicting it."""
        with self._lock:
            return self._store.get((name, rtype))
