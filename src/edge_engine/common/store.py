"""Bounded, thread-safe key/value store with LRU and optional TTL eviction.

Used for state shared between scan ticks (e.g. per-position peak P&L).
Every read-modify-write goes through a single lock so concurrent
callers never lose an update.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedStore(Generic[K, V]):
    """Dict-like store capped at *max_size* entries.

    The least recently used entry is evicted when a new key would exceed
    the cap. When *ttl_seconds* is set, entries not written for that long
    are treated as missing and dropped lazily.
    """

    def __init__(
        self,
        max_size: int = 1_000,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: OrderedDict[K, tuple[V, float]] = OrderedDict()
        self._lock = threading.Lock()

    def _expired(self, written_at: float) -> bool:
        return self.ttl_seconds is not None and self._clock() - written_at > self.ttl_seconds

    def _get_locked(self, key: K) -> V | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, written_at = entry
        if self._expired(written_at):
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    def _set_locked(self, key: K, value: V) -> None:
        if key in self._data:
            self._data.move_to_end(key)
        elif len(self._data) >= self.max_size:
            self._data.popitem(last=False)
        self._data[key] = (value, self._clock())

    def get(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            value = self._get_locked(key)
        return default if value is None else value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._set_locked(key, value)

    def update(self, key: K, fn: Callable[[V | None], V]) -> V:
        """Atomically replace the value for *key* with ``fn(current)``.

        *current* is None when the key is absent or expired.
        """
        with self._lock:
            new_value = fn(self._get_locked(key))
            self._set_locked(key, new_value)
            return new_value

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return self._get_locked(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._data.keys())
