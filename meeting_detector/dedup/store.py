"""Expiring-entry store shared by both deduplication layers.

An entry is "fresh" while its age is below the suppression window. Entries
whose age reaches the eviction window are removed by sweep(), which runs
after every upsert. ``max_entries`` bounds the store by dropping the oldest
entries first; the upstream cooldown uses ``max_entries=1`` to keep a single
previous-state snapshot.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass
class Entry(Generic[K, V]):
    """A stored value and the clock reading at its last upsert."""

    key: K
    timestamp: float
    value: V


class ExpiringStore(Generic[K, V]):
    """Keyed store with a suppression window and an eviction horizon.

    All durations are in seconds of ``clock`` (``time.monotonic`` by default).
    """

    def __init__(
        self,
        suppression_window: float,
        eviction_window: float | None = None,
        max_entries: int | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        if suppression_window < 0:
            raise ValueError("suppression_window must be >= 0")
        if eviction_window is not None and eviction_window < suppression_window:
            raise ValueError("eviction_window must not be shorter than suppression_window")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.suppression_window = suppression_window
        self.eviction_window = eviction_window
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[K, Entry[K, V]] = OrderedDict()

    def now(self) -> float:
        return self._clock()

    def get(self, key: K) -> Entry[K, V] | None:
        return self._entries.get(key)

    def is_fresh(self, key: K, now: float | None = None) -> bool:
        """True if ``key`` was upserted less than suppression_window ago."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        now = self.now() if now is None else now
        return now - entry.timestamp < self.suppression_window

    def upsert(self, key: K, value: V, now: float | None = None) -> Entry[K, V]:
        """Insert or refresh ``key``, then sweep expired and excess entries."""
        now = self.now() if now is None else now
        entry = Entry(key=key, timestamp=now, value=value)
        self._entries.pop(key, None)
        self._entries[key] = entry
        self.sweep(now)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return entry

    def sweep(self, now: float | None = None) -> int:
        """Evict entries whose age is >= eviction_window. Returns the count."""
        if self.eviction_window is None:
            return 0
        now = self.now() if now is None else now
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.timestamp >= self.eviction_window
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._entries))
