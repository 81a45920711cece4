"""Downstream dedup cache keyed by pid, service and verdict."""

from __future__ import annotations

import logging
import time

from meeting_detector.config import DEFAULT_EVICTION_WINDOW_MS, DEFAULT_SUPPRESSION_WINDOW_MS
from meeting_detector.dedup.store import Clock, ExpiringStore
from meeting_detector.models import MeetingSignal

logger = logging.getLogger(__name__)


class SignalDeduplicator:
    """Drops signals repeated within the suppression window.

    Signals without a pid bypass the cache entirely.
    """

    def __init__(
        self,
        suppression_window_ms: int = DEFAULT_SUPPRESSION_WINDOW_MS,
        eviction_window_ms: int = DEFAULT_EVICTION_WINDOW_MS,
        clock: Clock = time.monotonic,
    ) -> None:
        self._store: ExpiringStore[str, MeetingSignal] = ExpiringStore(
            suppression_window=suppression_window_ms / 1000.0,
            eviction_window=eviction_window_ms / 1000.0,
            clock=clock,
        )

    def admit(self, signal: MeetingSignal) -> bool:
        """Return True if ``signal`` should be forwarded, tracking it if so."""
        if not signal.pid:
            return True

        key = signal.dedup_key
        now = self._store.now()
        if self._store.is_fresh(key, now):
            logger.debug("Skipping duplicate signal for PID: %s", signal.pid)
            return False

        self._store.upsert(key, signal, now)
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def clear(self) -> None:
        self._store.clear()
