"""Thread-safe bounded store for correlation state."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, TypeVar


logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


@dataclass
class _Entry(Generic[V]):
    value: V
    stored_at: float


@dataclass
class BoundedStore(Generic[K, V]):
    """
    Thread-safe key/value store with:
    - LRU eviction once max_size is exceeded
    - Optional TTL (ttl_seconds=0 disables expiry)
    - Atomic pop, so a value can be consumed by exactly one caller

    Expired entries behave as missing and are removed lazily on access or
    eagerly by cleanup_expired().
    """
    max_size: int = 10000
    ttl_seconds: float = 0.0
    clock: Callable[[], float] = time.monotonic

    _store: OrderedDict = field(default_factory=OrderedDict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    # Stats
    _evictions: int = field(default=0, init=False)
    _expirations: int = field(default=0, init=False)

    def get(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return default
            self._store.move_to_end(key)
            return entry.value

    def set(self, key: K, value: V) -> None:
        """Insert or overwrite a value, evicting the least recently used entry if full."""
        with self._lock:
            self._insert(key, value)

    def pop(self, key: K, default: V | None = None) -> V | None:
        """Remove and return a live value; concurrent callers see it at most once."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return default
            del self._store[key]
            return entry.value

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        """Return the live value for key, creating it with factory if absent."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                self._store.move_to_end(key)
                return entry.value
            value = factory()
            self._insert(key, value)
            return value

    def discard(self, key: K) -> bool:
        with self._lock:
            return self._store.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        if not self.ttl_seconds:
            return 0
        with self._lock:
            now = self.clock()
            expired = [
                key for key, entry in self._store.items()
                if now - entry.stored_at > self.ttl_seconds
            ]
            for key in expired:
                del self._store[key]
            self._expirations += len(expired)
        return len(expired)

    def snapshot(self) -> dict[K, V]:
        """Copy of all live entries, taken under the lock."""
        with self._lock:
            now = self.clock()
            return {
                key: entry.value
                for key, entry in self._store.items()
                if not self._is_expired(entry, now)
            }

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def __len__(self) -> int:
        return len(self._store)

    def _insert(self, key: K, value: V) -> None:
        """Store value as most recently used and evict overflow (caller holds lock)."""
        self._store[key] = _Entry(value, self.clock())
        self._store.move_to_end(key)
        while len(self._store) > self.max_size:
            evicted, _ = self._store.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted {evicted!r} (max_size={self.max_size})")

    def _live_entry(self, key) -> _Entry | None:
        """Entry for key, dropping it if expired (caller holds lock)."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self.clock()):
            del self._store[key]
            self._expirations += 1
            return None
        return entry

    def _is_expired(self, entry: _Entry, now: float) -> bool:
        return bool(self.ttl_seconds) and now - entry.stored_at > self.ttl_seconds

    @property
    def stats(self) -> dict:
        return {
            "size": len(self._store),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "evictions": self._evictions,
            "expirations": self._expirations,
        }
