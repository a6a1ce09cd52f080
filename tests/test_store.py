"""Tests for the bounded key/value store."""

from __future__ import annotations

import threading

import pytest

from edge_engine.common.store import BoundedStore


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


class TestBoundedStore:
    def test_get_set(self):
        store: BoundedStore[str, int] = BoundedStore()
        store.set("a", 1)
        assert store.get("a") == 1
        assert store.get("missing") is None
        assert store.get("missing", 5) == 5

    def test_lru_eviction(self):
        store: BoundedStore[str, int] = BoundedStore(max_size=2)
        store.set("a", 1)
        store.set("b", 2)
        store.get("a")  # a is now most recent
        store.set("c", 3)
        assert "b" not in store
        assert "a" in store and "c" in store
        assert len(store) == 2

    def test_ttl_expiry(self):
        clock = FakeClock()
        store: BoundedStore[str, int] = BoundedStore(ttl_seconds=10, clock=clock)
        store.set("a", 1)
        clock.t = 5
        assert store.get("a") == 1
        clock.t = 16
        assert store.get("a") is None
        assert "a" not in store

    def test_update_receives_none_for_missing(self):
        store: BoundedStore[str, int] = BoundedStore()
        seen = []

        def fn(current):
            seen.append(current)
            return 1 if current is None else current + 1

        assert store.update("k", fn) == 1
        assert store.update("k", fn) == 2
        assert seen == [None, 1]

    def test_delete_and_clear(self):
        store: BoundedStore[str, int] = BoundedStore()
        store.set("a", 1)
        assert store.delete("a") is True
        assert store.delete("a") is False
        store.set("b", 2)
        store.clear()
        assert len(store) == 0

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            BoundedStore(max_size=0)

    def test_concurrent_updates_not_lost(self):
        """Atomic update: no increments lost under thread contention."""
        store: BoundedStore[str, int] = BoundedStore()

        def worker():
            for _ in range(500):
                store.update("n", lambda v: (v or 0) + 1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.get("n") == 4000
