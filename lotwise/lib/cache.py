"""
TTL Cache

Explicit key -> (value, expiry) cache passed to collaborators that fetch
market data. Nothing in the compute core holds a cache; callers inject one
and own its invalidation.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from lotwise.config import PRICE_CACHE_TTL_SECONDS
from lotwise.utils.logging_config import setup_logger

logger = setup_logger(__name__)

_MISSING = object()


class TTLCache:
    """
    Thread-safe in-memory cache with per-entry expiry.

    Args:
        ttl_seconds: Default lifetime of an entry
        clock: Returns the current time in seconds (time.monotonic by default)
    """

    def __init__(
        self,
        ttl_seconds: float = PRICE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"TTL must be positive: {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self.misses += 1
                return default
            self.hits += 1
            return value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def get_or_set(
        self,
        key: Hashable,
        factory: Callable[[], Any],
        ttl_seconds: Optional[float] = None
    ) -> Any:
        """
        Cached value for key, computing and storing it on a miss.

        Exceptions from factory propagate and nothing is cached.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = factory()
        self.set(key, value, ttl_seconds)
        return value

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop every entry whose key matches predicate. Returns the count dropped."""
        with self._lock:
            doomed = [key for key in self._entries if predicate(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, expires_at in self._entries.values() if expires_at > now)
