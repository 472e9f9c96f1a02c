"""Counter store abstraction + bounded in-memory implementation."""

import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from admission_gate.config.options import ConfigurationError
from admission_gate.store.models import WindowCounter

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class CounterStore(ABC):
    """Abstract base for per-client window counters."""

    @abstractmethod
    def get(self, key: str) -> WindowCounter | None:
        """Return the live counter for `key`, or None if there is none."""
        ...

    @abstractmethod
    def set(self, key: str, counter: WindowCounter) -> None:
        ...

    @abstractmethod
    def update(
        self, key: str, fn: Callable[[WindowCounter | None], WindowCounter]
    ) -> WindowCounter:
        """Atomically replace the counter for `key` with `fn(current)`."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


@dataclass
class _Entry:
    counter: WindowCounter
    expires_at: int


class InMemoryCounterStore(CounterStore):
    """Capacity-bounded LRU map with a per-entry time-to-live.

    Inserting a new key at capacity evicts the least recently used one.
    Eviction is lossy: an evicted client simply starts a fresh window on
    its next request, which can under-count it.

    The TTL is a physical bound for abandoned keys and is re-armed on every
    write; window expiry is decided by the accounting engine, not here.
    """

    def __init__(
        self,
        capacity: int = 10_000,
        ttl_ms: int = 3_600_000,
        clock: Clock = wall_clock_ms,
    ):
        if capacity <= 0:
            raise ConfigurationError("capacity must be positive")
        if ttl_ms <= 0:
            raise ConfigurationError("ttl_ms must be positive")
        self._capacity = capacity
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def get(self, key: str) -> WindowCounter | None:
        with self._lock:
            return self._get(key, self._clock())

    def set(self, key: str, counter: WindowCounter) -> None:
        with self._lock:
            self._set(key, counter, self._clock())

    def update(
        self, key: str, fn: Callable[[WindowCounter | None], WindowCounter]
    ) -> WindowCounter:
        with self._lock:
            now = self._clock()
            counter = fn(self._get(key, now))
            self._set(key, counter, now)
            return counter

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every physically expired entry. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and entry.expires_at > self._clock()

    def _get(self, key: str, now: int) -> WindowCounter | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.counter

    def _set(self, key: str, counter: WindowCounter, now: int) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        else:
            while len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
        self._entries[key] = _Entry(counter=counter, expires_at=now + self._ttl_ms)
