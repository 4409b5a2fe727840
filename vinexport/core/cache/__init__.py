"""In-memory cache for AI task results."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 24 * 60 * 60 * 1000


class CacheEntry(BaseModel):
    """A cached result."""

    result: Any
    timestamp: float = Field(description="Insertion time in seconds")
    ttl: float = Field(description="Time to live in milliseconds")
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.timestamp + self.ttl / 1000


class CacheStats(BaseModel):
    """Cache statistics."""

    size: int = 0
    total_hits: int = 0


class ResponseCache:
    """Result cache keyed on (prompt, schema, model, lang).

    Entries expire after their TTL and are removed lazily on access. When the
    cache grows past ``max_entries`` expired entries are dropped first, then
    the ``evict_count`` least-hit entries.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        evict_count: int = 200,
        default_ttl_ms: float = DEFAULT_TTL_MS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_entries = max_entries
        self.evict_count = evict_count
        self.default_ttl_ms = default_ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def make_key(
        self,
        prompt: str,
        schema: Any,
        model: str,
        lang: str | None = None,
    ) -> str:
        """Generate a cache key; argument order matters, schema keys do not."""
        key_str = json.dumps([prompt, schema, model, lang], sort_keys=True, default=str)
        return hashlib.sha256(key_str.encode()).hexdigest()[:32]

    def get(
        self,
        prompt: str,
        schema: Any,
        model: str,
        lang: str | None = None,
    ) -> Any | None:
        """Get a cached result, or None if absent or expired."""
        key = self.make_key(prompt, schema, model, lang)

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None

            entry.hits += 1
            return entry.result

    def set(
        self,
        prompt: str,
        schema: Any,
        model: str,
        result: Any,
        ttl_ms: float | None = None,
        lang: str | None = None,
    ) -> None:
        """Insert or overwrite a result."""
        key = self.make_key(prompt, schema, model, lang)
        entry = CacheEntry(
            result=result,
            timestamp=self._clock(),
            ttl=self.default_ttl_ms if ttl_ms is None else ttl_ms,
        )

        with self._lock:
            self._entries[key] = entry
            if len(self._entries) > self.max_entries:
                self._cleanup()

    def _cleanup(self) -> None:
        """Drop expired entries, then the least-hit ones. Caller holds the lock."""
        now = self._clock()
        expired = [k for k, v in self._entries.items() if v.is_expired(now)]
        for key in expired:
            del self._entries[key]

        evicted = 0
        if len(self._entries) > self.max_entries:
            least_hit = sorted(self._entries.items(), key=lambda x: x[1].hits)
            for key, _ in least_hit[: self.evict_count]:
                del self._entries[key]
                evicted += 1

        logger.info(f"Cache cleanup: {len(expired)} expired, {evicted} evicted")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                total_hits=sum(entry.hits for entry in self._entries.values()),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
