"""Upstream correlation: log lines in, forwarded candidate events out."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from meeting_detector.config import DEFAULT_COOLDOWN_SECONDS
from meeting_detector.context.resolver import ContextResolver
from meeting_detector.dedup.cooldown import CooldownFilter, CooldownState
from meeting_detector.dedup.store import Clock
from meeting_detector.identity.normalizer import normalize_helper_app
from meeting_detector.models import CandidateEvent
from meeting_detector.stream.accumulator import EventAccumulator

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class LogStreamCorrelator:
    """Accumulates TCC lines, attaches context, and applies the cooldown.

    One instance owns the accumulator and cooldown snapshot for a session.
    """

    def __init__(
        self,
        resolver: ContextResolver,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Clock = time.monotonic,
        wall_clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.resolver = resolver
        self.accumulator = EventAccumulator()
        self.cooldown = CooldownFilter(cooldown_seconds=cooldown_seconds, clock=clock)
        self._wall_clock = wall_clock
        self._emitted = 0

    @property
    def emitted_count(self) -> int:
        return self._emitted

    def feed_line(self, line: str) -> CandidateEvent | None:
        """Consume one log line; return an event if one should be forwarded."""
        record = self.accumulator.feed(line)
        if record is None:
            return None

        context = self.resolver.resolve(record.pid)
        event = CandidateEvent(
            service=record.service,
            verdict=record.verdict,
            context=context,
            timestamp=self._wall_clock(),
        )
        state = CooldownState(
            camera_active=context.camera_active,
            service=record.service,
            normalized_app=normalize_helper_app(context.process_name),
        )
        if not self.cooldown.should_emit(state):
            return None

        self._emitted += 1
        logger.debug(
            "Candidate event: service=%s verdict=%s pid=%s app=%s",
            event.service,
            event.verdict,
            event.pid,
            state.normalized_app,
        )
        return event

    def reset(self) -> None:
        self.accumulator.reset()
        self.cooldown.reset()
