"""In-memory TTL cache and the asyncio sweeper that evicts expired entries.

Entries are checked for expiry on every read, so a lookup never returns a
stale value even when the sweeper has not run yet. Operations contain no
awaits, which keeps them atomic with respect to other coroutines.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class _Missing:
    """Sentinel type for cache misses (a cached ``None`` is a valid hit)."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TTLCache(Generic[V]):
    """Key/value cache whose entries expire ``ttl_seconds`` after being set."""

    def __init__(
        self,
        ttl_seconds: float,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self.name = name
        self._entries: dict[Hashable, _Entry[V]] = {}

    def get(self, key: Hashable) -> V | _Missing:
        """Return the cached value, or ``MISSING`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        if self._clock() > entry.expires_at:
            self._entries.pop(key, None)
            return MISSING
        return entry.value

    def set(self, key: Hashable, value: V) -> None:
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + self._ttl)

    def evict(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def cleanup_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not MISSING


class CacheSweeper:
    """Periodically evicts expired entries from a set of caches.

    Runs as an asyncio.Task owned by the DiscoveryContainer.
    """

    def __init__(self, caches: Iterable[TTLCache[Any]], interval_seconds: float = 600):
        self._caches = list(caches)
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop (no-op when already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "CacheSweeper started (interval=%ss, caches=%s)",
            self._interval,
            [c.name for c in self._caches],
        )

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("CacheSweeper stopped")

    def sweep(self) -> int:
        """Run one eviction pass over every cache."""
        removed = 0
        for cache in self._caches:
            count = cache.cleanup_expired()
            if count:
                logger.debug("Evicted %d expired entries from %s", count, cache.name)
            removed += count
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("CacheSweeper pass failed")
