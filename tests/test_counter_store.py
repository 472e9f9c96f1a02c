"""Tests for admission_gate/store/counter_store.py — bounded LRU/TTL store."""

import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError

import pytest

from admission_gate.config.options import ConfigurationError
from admission_gate.store.counter_store import InMemoryCounterStore
from admission_gate.store.models import WindowCounter


class TestGetSet:

    def test_missing_key_is_none(self, clock):
        store = InMemoryCounterStore(clock=clock)
        assert store.get("nobody") is None

    def test_set_then_get(self, clock):
        store = InMemoryCounterStore(clock=clock)
        store.set("client-1", WindowCounter(count=3, reset_at=5000))
        assert store.get("client-1") == WindowCounter(count=3, reset_at=5000)

    def test_overwrite(self, clock):
        store = InMemoryCounterStore(clock=clock)
        store.set("client-1", WindowCounter(count=1, reset_at=1000))
        store.set("client-1", WindowCounter(count=2, reset_at=1000))
        assert store.get("client-1").count == 2
        assert len(store) == 1

    def test_delete(self, clock):
        store = InMemoryCounterStore(clock=clock)
        store.set("client-1", WindowCounter(count=1, reset_at=1000))
        store.delete("client-1")
        assert store.get("client-1") is None

    def test_delete_nonexistent_key(self, clock):
        """Deleting an unknown key should not raise."""
        InMemoryCounterStore(clock=clock).delete("nonexistent")


class TestTTL:

    def test_entry_expires_after_ttl(self, clock):
        store = InMemoryCounterStore(ttl_ms=1000, clock=clock)
        store.set("client-1", WindowCounter(count=1, reset_at=500))
        clock.advance(999)
        assert store.get("client-1") is not None
        clock.advance(1)
        assert store.get("client-1") is None
        assert len(store) == 0

    def test_set_rearms_ttl(self, clock):
        store = InMemoryCounterStore(ttl_ms=1000, clock=clock)
        store.set("client-1", WindowCounter(count=1, reset_at=500))
        clock.advance(800)
        store.set("client-1", WindowCounter(count=2, reset_at=500))
        clock.advance(800)
        assert store.get("client-1").count == 2

    def test_purge_expired(self, clock):
        store = InMemoryCounterStore(ttl_ms=1000, clock=clock)
        store.set("old", WindowCounter(count=1, reset_at=0))
        clock.advance(600)
        store.set("fresh", WindowCounter(count=1, reset_at=0))
        clock.advance(500)
        assert store.purge_expired() == 1
        assert "old" not in store
        assert "fresh" in store


class TestLRUEviction:

    def test_capacity_plus_one_evicts_oldest(self, clock):
        store = InMemoryCounterStore(capacity=3, clock=clock)
        for key in ("a", "b", "c", "d"):
            store.set(key, WindowCounter(count=1, reset_at=1000))
        assert len(store) == 3
        assert store.get("a") is None
        assert all(store.get(k) is not None for k in ("b", "c", "d"))

    def test_get_refreshes_recency(self, clock):
        store = InMemoryCounterStore(capacity=3, clock=clock)
        for key in ("a", "b", "c"):
            store.set(key, WindowCounter(count=1, reset_at=1000))
        store.get("a")
        store.set("d", WindowCounter(count=1, reset_at=1000))
        assert store.get("b") is None
        assert store.get("a") is not None

    def test_overwrite_at_capacity_does_not_evict(self, clock):
        store = InMemoryCounterStore(capacity=2, clock=clock)
        store.set("a", WindowCounter(count=1, reset_at=1000))
        store.set("b", WindowCounter(count=1, reset_at=1000))
        store.set("a", WindowCounter(count=2, reset_at=1000))
        assert "a" in store and "b" in store


class TestUpdate:

    def test_update_receives_none_for_missing(self, clock):
        store = InMemoryCounterStore(clock=clock)
        seen = []

        def fn(current):
            seen.append(current)
            return WindowCounter(count=1, reset_at=1000)

        result = store.update("client-1", fn)
        assert seen == [None]
        assert result == store.get("client-1")

    def test_concurrent_threads_lose_no_updates(self, clock):
        store = InMemoryCounterStore(clock=clock)

        def increment(_):
            store.update(
                "shared",
                lambda c: WindowCounter(count=(c.count if c else 0) + 1, reset_at=1000),
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(increment, range(500)))

        assert store.get("shared").count == 500

    def test_len_waits_for_writer(self, clock):
        store = InMemoryCounterStore(clock=clock)
        inside, release = threading.Event(), threading.Event()

        def slow_write(current):
            inside.set()
            release.wait(timeout=5)
            return WindowCounter(count=1, reset_at=1000)

        with ThreadPoolExecutor(max_workers=2) as pool:
            writer = pool.submit(store.update, "client-1", slow_write)
            assert inside.wait(timeout=5)
            size = pool.submit(len, store)
            with pytest.raises(TimeoutError):
                size.result(timeout=0.1)
            release.set()
            writer.result(timeout=5)
            assert size.result(timeout=5) == 1


class TestValidation:

    @pytest.mark.parametrize("kwargs", [{"capacity": 0}, {"ttl_ms": 0}, {"capacity": -1}])
    def test_rejects_non_positive_bounds(self, kwargs):
        with pytest.raises(ConfigurationError):
            InMemoryCounterStore(**kwargs)
