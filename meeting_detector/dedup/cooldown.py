"""Upstream cooldown filter: one previous-state snapshot plus a timer.

The novelty key is (camera_active, service, normalized_app). The front app
is not part of the key, so focus changes alone never emit.
"""

from __future__ import annotations

import logging
import time
from typing import NamedTuple

from meeting_detector.config import DEFAULT_COOLDOWN_SECONDS
from meeting_detector.dedup.store import Clock, ExpiringStore

logger = logging.getLogger(__name__)


class CooldownState(NamedTuple):
    camera_active: bool
    service: str
    normalized_app: str


class CooldownFilter:
    """Emit when the state changed or the cooldown has elapsed."""

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._snapshot: ExpiringStore[CooldownState, None] = ExpiringStore(
            suppression_window=cooldown_seconds,
            max_entries=1,
            clock=clock,
        )

    @property
    def previous_state(self) -> CooldownState | None:
        for state in self._snapshot:
            return state
        return None

    def should_emit(self, state: CooldownState) -> bool:
        """Check ``state`` against the snapshot; record it when emitting."""
        now = self._snapshot.now()
        if self._snapshot.is_fresh(state, now):
            logger.debug("Cooldown suppressing repeat state %s", state)
            return False
        self._snapshot.upsert(state, None, now)
        return True

    def reset(self) -> None:
        self._snapshot.clear()
